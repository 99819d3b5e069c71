"""Fan-out subscribers.

Each connected browser tab owns one ``Subscriber`` with a bounded mailbox.
Publishing never waits on a subscriber: when a mailbox is full the event is
dropped for that subscriber only.  Tabs recover anything they missed by
reconnecting with a cursor, which replays from the event log.
"""

from __future__ import annotations

import asyncio
import itertools

from loguru import logger

from agent_chat.chat_runtime.models.events import Event

DEFAULT_MAILBOX_SIZE = 64

_subscriber_ids = itertools.count(1)


class SubscriberTimeoutError(TimeoutError):
    """Raised when no subscriber connected before the deadline."""


class Subscriber:
    """A live sink with a bounded mailbox."""

    def __init__(self, maxsize: int = DEFAULT_MAILBOX_SIZE) -> None:
        self.id = next(_subscriber_ids)
        self.dropped = 0
        self._mailbox: asyncio.Queue[Event] = asyncio.Queue(maxsize=maxsize)

    def offer(self, event: Event) -> bool:
        """Enqueue without blocking.  Returns ``False`` if the event was dropped."""
        try:
            self._mailbox.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning("Subscriber {}: mailbox full, dropped event seq={}", self.id, event.seq)
            return False
        return True

    async def get(self) -> Event:
        return await self._mailbox.get()

    def get_nowait(self) -> Event:
        """Raises ``asyncio.QueueEmpty`` if nothing is waiting."""
        return self._mailbox.get_nowait()

    def pending(self) -> int:
        return self._mailbox.qsize()

    def __repr__(self) -> str:
        return f"Subscriber(id={self.id}, pending={self.pending()}, dropped={self.dropped})"


class SubscriberRegistry:
    """The set of live subscribers.

    ``_present`` is set while at least one subscriber is registered so that
    ``wait_nonempty`` wakes immediately on the first ``add``.
    """

    def __init__(self, mailbox_size: int = DEFAULT_MAILBOX_SIZE) -> None:
        self._mailbox_size = mailbox_size
        self._subscribers: dict[int, Subscriber] = {}
        self._present = asyncio.Event()

    def add(self) -> Subscriber:
        sub = Subscriber(self._mailbox_size)
        self._subscribers[sub.id] = sub
        self._present.set()
        logger.debug("Subscribers: added {} (total={})", sub.id, len(self._subscribers))
        return sub

    def remove(self, sub: Subscriber) -> None:
        if self._subscribers.pop(sub.id, None) is not None:
            logger.debug("Subscribers: removed {} (total={})", sub.id, len(self._subscribers))
        if not self._subscribers:
            self._present.clear()

    def fan_out(self, event: Event) -> int:
        """Offer *event* to every subscriber.  Returns how many accepted it."""
        delivered = 0
        for sub in list(self._subscribers.values()):
            if sub.offer(event):
                delivered += 1
        return delivered

    async def wait_nonempty(self, timeout: float | None = None) -> None:
        """Wait until at least one subscriber is registered.

        Raises ``SubscriberTimeoutError`` after *timeout* seconds.
        """
        if self._subscribers:
            return
        try:
            await asyncio.wait_for(self._present.wait(), timeout=timeout)
        except TimeoutError:
            raise SubscriberTimeoutError("Timed out waiting for a browser to connect") from None

    def __len__(self) -> int:
        return len(self._subscribers)
