"""FastAPI dependency injection for the shared event bus.

Usage in route handlers::

    @router.get("/history")
    async def history(bus: Bus) -> HistoryResponse:
        ...
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request, WebSocket, status

from agent_chat.chat_runtime.bus import EventBus


def get_bus(request: Request) -> EventBus:
    """Return the bus created during lifespan startup."""
    bus: EventBus | None = getattr(request.app.state, "bus", None)
    if bus is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Event bus not initialised.",
        )
    return bus


def get_ws_bus(websocket: WebSocket) -> EventBus:
    """WebSocket flavour of :func:`get_bus`; fails the upgrade if missing."""
    bus: EventBus | None = getattr(websocket.app.state, "bus", None)
    if bus is None:
        raise RuntimeError("Event bus not initialised")
    return bus


Bus = Annotated[EventBus, Depends(get_bus)]
"""Annotated dependency: the process-wide event bus."""

WsBus = Annotated[EventBus, Depends(get_ws_bus)]
"""Annotated dependency: the event bus, for WebSocket routes."""
