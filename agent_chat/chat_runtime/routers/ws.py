"""Browser WebSocket endpoint."""

from __future__ import annotations

from fastapi import APIRouter, WebSocket

from agent_chat.chat_runtime.connection import ConnectionHandler, parse_cursor
from agent_chat.chat_runtime.deps import WsBus

router = APIRouter(tags=["ws"])


@router.websocket("/ws")
async def chat_socket(websocket: WebSocket, bus: WsBus, cursor: str | None = None) -> None:
    """Stream events to one tab; ``cursor`` is the last ``seq`` it rendered."""
    handler = ConnectionHandler(websocket, bus, cursor=parse_cursor(cursor))
    await handler.run()
