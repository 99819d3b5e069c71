"""HTTP response schemas."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class HistoryResponse(BaseModel):
    """Snapshot used by clients that poll instead of holding a socket open."""

    model_config = ConfigDict(populate_by_name=True)

    events: list[dict[str, Any]] = Field(default_factory=list, description="Event frames with seq > cursor.")
    pending_ack_id: str | None = Field(default=None, alias="pendingAckId")
    quick_replies: list[str] = Field(default_factory=list, alias="quickReplies")
