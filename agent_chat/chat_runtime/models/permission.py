"""Permission prompt model extracted from an agent session transcript."""

from __future__ import annotations

from pydantic import BaseModel

from agent_chat.chat_runtime.models.enums import EventType
from agent_chat.chat_runtime.models.events import Event


class PermissionPrompt(BaseModel):
    """A tool invocation that may be waiting for the human's approval."""

    tool_use_id: str
    tool_name: str
    title: str = ""
    """Short human-readable description."""
    detail: str = ""
    """The command, file path, or pattern."""

    def to_event(self) -> Event:
        return Event(
            type=EventType.PERMISSION_PROMPT,
            text=self.title,
            tool_use_id=self.tool_use_id,
            tool_name=self.tool_name,
            detail=self.detail,
        )
