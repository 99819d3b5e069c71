"""Event and attachment models.

An ``Event`` is immutable once published: the bus stamps ``seq`` and ``ts``
by copying the caller's event, never by mutating it.  The same JSON shape is
used for WebSocket frames and for lines of the durable event log.
"""

from __future__ import annotations

import time
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from agent_chat.chat_runtime.models.enums import EventType


def now_ms() -> int:
    """Current wall-clock time in milliseconds since the epoch."""
    return int(time.time() * 1000)


class FileRef(BaseModel):
    """An uploaded (or agent-supplied) file attached to a message.

    Wire names are the short ones the browser uses (``path``, ``url``,
    ``size``, ``type``); Python code uses the descriptive attribute names.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    server_path: str = Field(default="", alias="path")
    public_url: str = Field(default="", alias="url")
    size_bytes: int = Field(default=0, alias="size")
    mime_type: str = Field(default="", alias="type")
    """MIME type; empty string means unknown."""


class Event(BaseModel):
    """A chat event broadcast to browser tabs and persisted to the event log.

    Attributes
    ----------
    type:
        Event kind.
    seq:
        Bus-assigned sequence number.  ``0`` marks a log-only entry that was
        never broadcast.
    ts:
        Milliseconds since the epoch; defaulted at publish time when ``0``.
    ack_id:
        Present only on events that expect an acknowledgement.
    quick_replies:
        Suggested replies.  Empty means the agent is working and not waiting.
    instructions:
        Opaque draw payload, carried but never interpreted.
    tool_use_id, tool_name, detail:
        Permission prompt fields (``permissionPrompt`` / ``permissionResolved``).
    """

    model_config = ConfigDict(frozen=True)

    type: EventType
    seq: int = 0
    ts: int = 0
    text: str = ""
    ack_id: str | None = None
    quick_replies: tuple[str, ...] = ()
    files: tuple[FileRef, ...] = ()
    instructions: Any = None
    tool_use_id: str | None = None
    tool_name: str | None = None
    detail: str | None = None

    def to_wire(self) -> dict[str, Any]:
        """Render the JSON frame, omitting empty optional fields."""
        body = self.model_dump(mode="json", by_alias=True, exclude_defaults=True)
        frame: dict[str, Any] = {"type": self.type.value, "seq": self.seq}
        frame.update(body)
        return frame


class UserMessage(BaseModel):
    """A message typed (or spoken) in a browser tab, waiting for the agent."""

    model_config = ConfigDict(frozen=True)

    text: str = ""
    files: tuple[FileRef, ...] = ()
