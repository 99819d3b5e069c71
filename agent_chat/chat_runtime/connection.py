"""Per-connection protocol driver for browser tabs.

Lifecycle of one connection::

    CONNECTING --accept/handshake/subscribe--> STREAMING --disconnect--> CLOSED

On entering STREAMING the handler:

1. sends the ``connected`` handshake (version, pending ack, open quick replies);
2. subscribes to the bus **before** reading history, so nothing published in
   between can be lost;
3. replays ``events_since(cursor)`` and remembers the highest ``seq`` sent;
4. runs a single writer that forwards live events (skipping any with
   ``seq <= high_seq``, which were already replayed) and local notices;
5. concurrently reads client frames and feeds them into the bus.

The WebSocket is only ever written by one task at a time: the handler itself
during handshake/replay, then the writer task.
"""

from __future__ import annotations

import asyncio
import itertools
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any, Protocol

import anyio
from fastapi import WebSocketDisconnect
from loguru import logger

from agent_chat.chat_runtime.bus import EventBus, Subscriber
from agent_chat.chat_runtime.models.acks import parse_ack_reply
from agent_chat.chat_runtime.models.enums import ConnectionState, EventType
from agent_chat.chat_runtime.models.events import Event
from agent_chat.chat_runtime.models.frames import (
    MESSAGE_QUEUED_FRAME,
    AckFrame,
    ConnectedFrame,
    MessageFrame,
    parse_client_frame,
)
from agent_chat.chat_runtime.version import __version__

NOTICE_QUEUE_SIZE = 16

_connection_ids = itertools.count(1)


class FrameSocket(Protocol):
    """The subset of ``fastapi.WebSocket`` the handler uses."""

    async def accept(self) -> None: ...

    async def send_json(self, data: Any) -> None: ...

    def iter_text(self) -> AsyncIterator[str]: ...


def parse_cursor(raw: str | None) -> int:
    """Parse the ``cursor`` query parameter.  Missing or invalid means 0."""
    if not raw:
        return 0
    try:
        return max(int(raw), 0)
    except ValueError:
        return 0


class ConnectionHandler:
    """Drives one WebSocket from handshake to close."""

    def __init__(
        self,
        websocket: FrameSocket,
        bus: EventBus,
        *,
        cursor: int = 0,
        version: str = __version__,
    ) -> None:
        self.id = next(_connection_ids)
        self.state = ConnectionState.CONNECTING
        self.cursor = cursor
        self.high_seq = cursor
        self._ws = websocket
        self._bus = bus
        self._version = version
        self._subscriber: Subscriber | None = None
        self._notices: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=NOTICE_QUEUE_SIZE)

    async def run(self) -> None:
        """Serve the connection until the client goes away."""
        await self._ws.accept()
        logger.info("Connection {}: opened (cursor={})", self.id, self.cursor)
        try:
            await self._ws.send_json(self._handshake())
            self._subscriber = self._bus.subscribe()
            self.state = ConnectionState.STREAMING
            await self._replay()
            await self._pump()
        except WebSocketDisconnect:
            logger.debug("Connection {}: client disconnected", self.id)
        except (RuntimeError, OSError) as exc:
            logger.warning("Connection {}: transport error: {}", self.id, exc)
        finally:
            if self._subscriber is not None:
                self._bus.unsubscribe(self._subscriber)
            self.state = ConnectionState.CLOSED
            logger.info("Connection {}: closed (high_seq={})", self.id, self.high_seq)

    # -- Streaming ---------------------------------------------------------------

    def _handshake(self) -> dict[str, Any]:
        frame = ConnectedFrame(
            version=self._version,
            pending_ack_id=self._bus.pending_ack_token(),
            quick_replies=self._bus.last_quick_replies() or None,
        )
        return frame.to_wire()

    async def _replay(self) -> None:
        cursor = self.cursor
        if cursor > self._bus.last_seq:
            # Client saw a previous, non-durable incarnation of the bus.
            logger.info(
                "Connection {}: cursor {} ahead of bus (seq={}), replaying all", self.id, cursor, self._bus.last_seq
            )
            cursor = 0
            self.high_seq = 0

        missed = self._bus.events_since(cursor)
        for event in missed:
            await self._ws.send_json(event.to_wire())
            self.high_seq = event.seq
        if missed:
            logger.debug("Connection {}: replayed {} events", self.id, len(missed))

    async def _pump(self) -> None:
        """Run writer and reader until either finishes, then stop the other.

        Both sides live in one task group, so cancellation from the server
        (shutdown, client gone) tears them down through the same scope.
        """
        async with anyio.create_task_group() as tg:
            for side, loop in (("writer", self._write_loop), ("reader", self._read_loop)):
                tg.start_soon(self._run_side, side, loop, tg.cancel_scope, name=f"connection-{self.id}-{side}")

    async def _run_side(
        self,
        side: str,
        loop: Callable[[], Awaitable[None]],
        scope: anyio.CancelScope,
    ) -> None:
        try:
            await loop()
        except WebSocketDisconnect:
            logger.debug("Connection {}: client disconnected ({})", self.id, side)
        except (RuntimeError, OSError) as exc:
            logger.warning("Connection {}: transport error in {}: {}", self.id, side, exc)
        finally:
            scope.cancel()

    async def _write_loop(self) -> None:
        assert self._subscriber is not None  # noqa: S101
        sub = self._subscriber
        next_event = asyncio.ensure_future(sub.get())
        next_notice = asyncio.ensure_future(self._notices.get())
        try:
            while True:
                done, _ = await asyncio.wait({next_event, next_notice}, return_when=asyncio.FIRST_COMPLETED)
                if next_event in done:
                    event = next_event.result()
                    next_event = asyncio.ensure_future(sub.get())
                    await self._forward(event)
                if next_notice in done:
                    notice = next_notice.result()
                    next_notice = asyncio.ensure_future(self._notices.get())
                    await self._ws.send_json(notice)
        finally:
            next_event.cancel()
            next_notice.cancel()

    async def _forward(self, event: Event) -> None:
        if event.seq <= self.high_seq:
            return
        await self._ws.send_json(event.to_wire())
        self.high_seq = event.seq

    # -- Inbound -----------------------------------------------------------------

    async def _read_loop(self) -> None:
        async for raw in self._ws.iter_text():
            frame = parse_client_frame(raw)
            if frame is None:
                logger.debug("Connection {}: skipped malformed frame", self.id)
                continue
            if isinstance(frame, MessageFrame):
                await self._on_message(frame)
            elif isinstance(frame, AckFrame):
                await self._on_ack(frame)

    async def _on_message(self, frame: MessageFrame) -> None:
        if not frame.text and not frame.files:
            return
        self._bus.push_message(frame.text, frame.files)
        # Every tab (the sender included) renders the bubble from the bus.
        await self._bus.publish(Event(type=EventType.USER_MESSAGE, text=frame.text, files=tuple(frame.files)))
        try:
            self._notices.put_nowait(MESSAGE_QUEUED_FRAME)
        except asyncio.QueueFull:
            logger.debug("Connection {}: notice queue full, dropped messageQueued", self.id)

    async def _on_ack(self, frame: AckFrame) -> None:
        if not frame.id:
            return
        if not self._bus.resolve_ack(frame.id, parse_ack_reply(frame.message)):
            logger.debug("Connection {}: ack {} not pending", self.id, frame.id)
        await self._bus.publish(Event(type=EventType.USER_MESSAGE, text=frame.message))
