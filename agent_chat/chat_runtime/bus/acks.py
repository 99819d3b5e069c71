"""Pending acknowledgement registry.

A publisher that needs a reply creates a ``PendingAck``, puts its token on
an outgoing event, and awaits it.  Whoever receives the reply (the connection
handler) resolves the token.  Each token resolves at most once.

Entries leave the registry on resolution, and also when the waiter gives up
(timeout or cancellation) so abandoned prompts do not accumulate.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass

from loguru import logger

from agent_chat.chat_runtime.models.acks import AckResult


class AckTimeoutError(TimeoutError):
    """Raised when nobody resolved an ack within the caller's timeout."""


@dataclass(eq=False)
class PendingAck:
    """Handle returned by ``AckRegistry.create``.

    ``result`` is a single-use future: it completes with exactly one
    ``AckResult`` or never.
    """

    token: str
    result: asyncio.Future[AckResult]


class AckRegistry:
    def __init__(self) -> None:
        self._pending: dict[str, PendingAck] = {}

    def create(self) -> PendingAck:
        ack = PendingAck(token=str(uuid.uuid4()), result=asyncio.get_running_loop().create_future())
        self._pending[ack.token] = ack
        logger.debug("Acks: created {}", ack.token)
        return ack

    def resolve(self, token: str, result: AckResult) -> bool:
        """Deliver *result* to the waiter of *token*.

        Returns ``False`` for unknown or already-resolved tokens, without any
        side effect.
        """
        ack = self._pending.pop(token, None)
        if ack is None:
            return False
        if not ack.result.done():
            ack.result.set_result(result)
        logger.debug("Acks: resolved {}", token)
        return True

    def discard(self, ack: PendingAck) -> None:
        """Remove *ack* without resolving it.  No-op if already gone."""
        if self._pending.get(ack.token) is ack:
            del self._pending[ack.token]
        if not ack.result.done():
            ack.result.cancel()

    async def wait(self, ack: PendingAck, timeout: float | None = None) -> AckResult:
        """Wait for *ack* to be resolved.

        Raises ``AckTimeoutError`` after *timeout* seconds.  On timeout or
        cancellation the entry is discarded.
        """
        try:
            async with asyncio.timeout(timeout):
                return await asyncio.shield(ack.result)
        except TimeoutError:
            self.discard(ack)
            raise AckTimeoutError(f"No acknowledgement for {ack.token} within {timeout}s") from None
        except asyncio.CancelledError:
            self.discard(ack)
            raise

    def first_token(self) -> str | None:
        """Return the oldest pending token, if any."""
        return next(iter(self._pending), None)

    def __contains__(self, token: object) -> bool:
        return token in self._pending

    def __len__(self) -> int:
        return len(self._pending)
