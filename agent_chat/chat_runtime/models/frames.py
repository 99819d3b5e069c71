"""WebSocket frame schemas.

Client -> server frames are a discriminated union on ``type``.  Anything that
fails validation (bad JSON, unknown type, wrong field types) is dropped by the
connection handler without closing the socket.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from agent_chat.chat_runtime.models.enums import ServerFrameType
from agent_chat.chat_runtime.models.events import FileRef

# -- Client -> server --------------------------------------------------------


class MessageFrame(BaseModel):
    """``{"type": "message", "text": str, "files"?: [FileRef]}``"""

    type: Literal["message"]
    text: str = ""
    files: list[FileRef] = Field(default_factory=list)


class AckFrame(BaseModel):
    """``{"type": "ack", "id": str, "message"?: str}``"""

    type: Literal["ack"]
    id: str = ""
    message: str = ""


ClientFrame = Annotated[MessageFrame | AckFrame, Field(discriminator="type")]

_client_frame_adapter: TypeAdapter[MessageFrame | AckFrame] = TypeAdapter(ClientFrame)


def parse_client_frame(raw: str | bytes) -> MessageFrame | AckFrame | None:
    """Parse one inbound frame.  Returns ``None`` for malformed input."""
    try:
        return _client_frame_adapter.validate_json(raw)
    except ValidationError:
        return None


# -- Server -> client --------------------------------------------------------


class ConnectedFrame(BaseModel):
    """Handshake sent once per connection, before any event frame."""

    type: Literal["connected"] = ServerFrameType.CONNECTED.value
    version: str
    pending_ack_id: str | None = Field(default=None, serialization_alias="pendingAckId")
    quick_replies: list[str] | None = Field(default=None, serialization_alias="quickReplies")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


MESSAGE_QUEUED_FRAME: dict[str, Any] = {"type": ServerFrameType.MESSAGE_QUEUED.value}
