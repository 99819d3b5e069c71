"""The event bus shared by the tool layer, browser connections and watcher.

The bus owns four things:

1. **Event log** -- every published event, sequence-numbered, optionally
   mirrored to a JSONL file and reloaded on startup.
2. **Subscribers** -- one bounded mailbox per connected tab.
3. **Pending acks** -- blocking request/response rendezvous by token.
4. **Message queue** -- user turns waiting for the agent to pick them up.

All state lives on the event loop.  Code between two ``await`` points runs
without interleaving, so sequence assignment, log append, derived-state
update and fan-out inside ``publish`` form one critical section.  The disk
mirror has its own lock and runs in a worker thread, so a slow disk holds up
neither fan-out nor other publishers' in-memory work.
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Iterable
from functools import partial
from pathlib import Path

from anyio import to_thread
from loguru import logger

from agent_chat.chat_runtime.bus.acks import AckRegistry, PendingAck
from agent_chat.chat_runtime.bus.event_log import (
    EventLog,
    EventLogWriter,
    derive_quick_replies,
    load_event_log,
)
from agent_chat.chat_runtime.bus.subscribers import (
    DEFAULT_MAILBOX_SIZE,
    Subscriber,
    SubscriberRegistry,
)
from agent_chat.chat_runtime.models.acks import AckResult
from agent_chat.chat_runtime.models.events import Event, FileRef, UserMessage, now_ms

DEFAULT_QUEUE_SIZE = 256
SUBSCRIBER_WAIT_CEILING = 30.0


class MessageTimeoutError(TimeoutError):
    """Raised when no user message arrived before the deadline."""


class EventBus:
    """Pub/sub hub with blocking acks, a message queue and reconnect replay.

    Construct one per process and pass it to every collaborator.  Use
    ``await EventBus.open(path)`` to back the log with a durable file.
    """

    def __init__(
        self,
        *,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        mailbox_size: int = DEFAULT_MAILBOX_SIZE,
        subscriber_timeout: float = SUBSCRIBER_WAIT_CEILING,
        events: Iterable[Event] = (),
        last_quick_replies: tuple[str, ...] = (),
        writer: EventLogWriter | None = None,
    ) -> None:
        # -- In-memory state (mutated only inside synchronous sections) --------
        self._log = EventLog(events)
        self._next_seq = self._log.max_seq
        self._last_quick_replies = last_quick_replies
        self._last_voice = False

        # -- Separately owned registries ---------------------------------------
        self._subscribers = SubscriberRegistry(mailbox_size)
        self._acks = AckRegistry()
        self._subscriber_timeout = subscriber_timeout

        # -- Inbound user messages (drop-oldest on overflow) -------------------
        self._messages: deque[UserMessage] = deque(maxlen=queue_size)
        self._message_ready = asyncio.Event()

        # -- Durable mirror ----------------------------------------------------
        self._writer = writer
        self._log_lock = asyncio.Lock()
        self._pending_writes: set[asyncio.Task[None]] = set()

    @classmethod
    async def open(cls, path: str | Path, **kwargs: object) -> EventBus:
        """Create a bus backed by the JSONL file at *path*.

        Existing events are loaded so that tabs get full history across
        restarts, and numbering continues after the highest stored ``seq``.
        Raises ``OSError`` if the file cannot be opened for appending.
        """
        loaded = await to_thread.run_sync(partial(load_event_log, path))
        writer = await to_thread.run_sync(partial(EventLogWriter, path))
        logger.info("Event log {}: loaded {} events (max_seq={})", path, len(loaded.events), loaded.max_seq)
        return cls(
            events=loaded.events,
            last_quick_replies=loaded.last_quick_replies,
            writer=writer,
            **kwargs,  # type: ignore[arg-type]
        )

    # -- Publishing --------------------------------------------------------------

    async def publish(self, event: Event) -> Event:
        """Stamp, store and broadcast *event*.  Returns the stored copy.

        Subscribers with a full mailbox miss this event; publish never blocks
        on them and never reports the drop.  Once broadcast, the event reaches
        the durable log even if the caller is cancelled while it waits.
        """
        self._next_seq += 1
        stored = event.model_copy(update={"seq": self._next_seq, "ts": event.ts or now_ms()})
        self._log.append(stored)
        self._last_quick_replies = derive_quick_replies(self._last_quick_replies, stored)
        self._subscribers.fan_out(stored)

        await self._persist(stored)
        return stored

    async def record(self, event: Event) -> Event:
        """Store *event* as a log-only entry (``seq == 0``), without broadcasting."""
        stored = event.model_copy(update={"seq": 0, "ts": event.ts or now_ms()})
        self._log.append(stored)
        await self._persist(stored)
        return stored

    async def _persist(self, event: Event) -> None:
        if self._writer is None:
            return
        # Tasks start in creation order, so lines still land in seq order.
        write = asyncio.create_task(self._write_to_log(event), name=f"event-log-seq-{event.seq}")
        self._pending_writes.add(write)
        write.add_done_callback(self._pending_writes.discard)
        await asyncio.shield(write)

    async def _write_to_log(self, event: Event) -> None:
        if self._writer is None:
            return
        async with self._log_lock:
            if self._writer.closed:
                return
            try:
                await to_thread.run_sync(partial(self._writer.write, event))
            except OSError:
                logger.exception("Event log {}: failed to write seq={}", self._writer.path, event.seq)

    # -- Acks --------------------------------------------------------------------

    def create_ack(self) -> PendingAck:
        return self._acks.create()

    def resolve_ack(self, token: str, result: AckResult) -> bool:
        return self._acks.resolve(token, result)

    async def wait_ack(self, ack: PendingAck, timeout: float | None = None) -> AckResult:
        return await self._acks.wait(ack, timeout=timeout)

    def pending_ack_token(self) -> str | None:
        return self._acks.first_token()

    @property
    def pending_ack_count(self) -> int:
        return len(self._acks)

    # -- Subscribers -------------------------------------------------------------

    def subscribe(self) -> Subscriber:
        return self._subscribers.add()

    def unsubscribe(self, sub: Subscriber) -> None:
        self._subscribers.remove(sub)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def wait_for_subscriber(self, timeout: float | None = None) -> None:
        """Wait until at least one browser tab is connected.

        The wait is capped at the bus ceiling (30s by default) even when
        *timeout* is larger or ``None``.  Raises ``SubscriberTimeoutError``.
        """
        limit = self._subscriber_timeout if timeout is None else min(timeout, self._subscriber_timeout)
        await self._subscribers.wait_nonempty(timeout=limit)

    # -- Message queue -----------------------------------------------------------

    def push_message(self, text: str, files: Iterable[FileRef] = ()) -> None:
        """Queue a user message.  When full, the oldest message is dropped."""
        if len(self._messages) == self._messages.maxlen:
            dropped = self._messages[0]
            logger.warning("Message queue full, dropped oldest message ({} chars)", len(dropped.text))
        self._messages.append(UserMessage(text=text, files=tuple(files)))
        self._message_ready.set()

    def drain_messages(self) -> list[UserMessage]:
        """Return and remove every queued message, oldest first."""
        msgs = list(self._messages)
        self._messages.clear()
        self._message_ready.clear()
        return msgs

    async def wait_for_messages(self, timeout: float | None = None) -> list[UserMessage]:
        """Wait for at least one queued message, then drain the queue.

        Messages that arrived while the agent was busy come back together as
        one batch.  Raises ``MessageTimeoutError`` after *timeout* seconds.
        """
        try:
            async with asyncio.timeout(timeout):
                while not self._messages:
                    self._message_ready.clear()
                    await self._message_ready.wait()
        except TimeoutError:
            raise MessageTimeoutError("Timed out waiting for a user message") from None
        return self.drain_messages()

    def has_queued_messages(self) -> bool:
        return bool(self._messages)

    # -- History -----------------------------------------------------------------

    def events_since(self, cursor: int) -> list[Event]:
        return self._log.since(cursor)

    def history(self) -> tuple[list[Event], str | None]:
        """Return every stored event and the pending ack token (if any)."""
        return self._log.entries(), self.pending_ack_token()

    def reset_log(self) -> None:
        """Clear the in-memory log.  Sequence numbering is not reset."""
        self._log.clear()

    @property
    def last_seq(self) -> int:
        return self._next_seq

    # -- Derived state -----------------------------------------------------------

    def last_quick_replies(self) -> list[str]:
        """Quick replies of the open question, or ``[]`` if the agent is working."""
        return list(self._last_quick_replies)

    @property
    def last_voice(self) -> bool:
        return self._last_voice

    def set_last_voice(self, voice: bool) -> None:
        self._last_voice = voice

    # -- Lifecycle ---------------------------------------------------------------

    async def close(self) -> None:
        """Flush and close the durable log.  Safe to call more than once.

        Writes already handed off (including those of cancelled publishers)
        are completed first.
        """
        if self._writer is None:
            return
        if self._pending_writes:
            await asyncio.gather(*self._pending_writes)
        async with self._log_lock:
            if self._writer.closed:
                return
            try:
                await to_thread.run_sync(self._writer.close)
            except OSError:
                logger.exception("Event log {}: failed to close", self._writer.path)
            else:
                logger.info("Event log {}: closed", self._writer.path)
