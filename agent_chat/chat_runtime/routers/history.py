"""Event history endpoint.

Polling clients (and anything debugging the bus) can read the log without
holding a socket open.
"""

from __future__ import annotations

from fastapi import APIRouter

from agent_chat.chat_runtime.connection import parse_cursor
from agent_chat.chat_runtime.deps import Bus
from agent_chat.chat_runtime.models.api import HistoryResponse

router = APIRouter(tags=["history"])


@router.get("/history", response_model=HistoryResponse)
async def get_history(bus: Bus, cursor: str | None = None) -> HistoryResponse:
    """Return stored events after ``cursor``.

    Without a cursor the whole log comes back, including log-only entries
    (``seq == 0``).  An unparsable cursor counts as 0.
    """
    position = parse_cursor(cursor)
    if position:
        events = bus.events_since(position)
        pending = bus.pending_ack_token()
    else:
        events, pending = bus.history()
    return HistoryResponse(
        events=[event.to_wire() for event in events],
        pending_ack_id=pending,
        quick_replies=bus.last_quick_replies(),
    )
