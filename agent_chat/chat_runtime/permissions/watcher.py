"""Debounced permission watcher.

Tails the agent's session transcript and surfaces a ``permissionPrompt``
event only when a tool invocation stays unresolved for the debounce window.
Tools the agent runs without asking finish well inside the window, so they
never reach the UI.

Per tool invocation::

    tool_use seen ----------------> pending (timer armed)
    tool_result before timer -----> timer cancelled, permissionResolved
    timer fires ------------------> permissionPrompt (entry stays pending)
    tool_result after prompt -----> permissionResolved (UI retracts prompt)

Only content appended after the watcher starts is considered.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from typing import BinaryIO

from anyio import to_thread

from agent_chat.chat_runtime.bus import EventBus
from agent_chat.chat_runtime.models.enums import EventType
from agent_chat.chat_runtime.models.events import Event
from agent_chat.chat_runtime.models.permission import PermissionPrompt
from agent_chat.chat_runtime.permissions.parser import parse_transcript_line

logger = logging.getLogger(__name__)

PROMPT_DEBOUNCE = 1.5
POLL_INTERVAL = 0.2


@dataclass(eq=False)
class _PendingPrompt:
    prompt: PermissionPrompt
    timer: asyncio.Task[None] | None = None
    fired: bool = field(default=False)


class PermissionWatcher:
    """Turns an external JSONL transcript into permission events on the bus."""

    def __init__(
        self,
        path: str | Path,
        bus: EventBus,
        *,
        debounce: float = PROMPT_DEBOUNCE,
        poll_interval: float = POLL_INTERVAL,
    ) -> None:
        self.path = Path(path)
        self._bus = bus
        self._debounce = debounce
        self._poll_interval = poll_interval
        self._pending: dict[str, _PendingPrompt] = {}
        self._buffer = b""
        self._task: asyncio.Task[None] | None = None

    # -- Lifecycle ---------------------------------------------------------------

    def start(self) -> asyncio.Task[None]:
        """Run the watcher in a background task."""
        self._task = asyncio.create_task(self.run(), name="permission-watcher")
        return self._task

    async def stop(self) -> None:
        """Cancel the background task and every armed timer."""
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        self._clear_pending()

    async def run(self) -> None:
        """Tail the transcript until cancelled."""
        try:
            fh: BinaryIO = await to_thread.run_sync(partial(self.path.open, "rb"))
        except OSError as exc:
            logger.warning("Permission watcher: cannot open %s: %s", self.path, exc)
            return

        try:
            await to_thread.run_sync(partial(fh.seek, 0, os.SEEK_END))
            logger.info("Permission watcher: tailing %s", self.path)
            while True:
                await asyncio.sleep(self._poll_interval)
                chunk = await to_thread.run_sync(fh.read)
                if chunk:
                    await self.feed(chunk)
        finally:
            self._clear_pending()
            fh.close()

    # -- Processing --------------------------------------------------------------

    async def feed(self, chunk: bytes) -> None:
        """Consume newly appended bytes.  An unterminated last line is kept."""
        self._buffer += chunk
        *lines, self._buffer = self._buffer.split(b"\n")
        for line in lines:
            if line.strip():
                await self.process_line(line)

    async def process_line(self, line: str | bytes) -> None:
        prompts, resolved_ids = parse_transcript_line(line)

        for tool_use_id in resolved_ids:
            pending = self._pending.pop(tool_use_id, None)
            if pending is None:
                continue
            if not pending.fired and pending.timer is not None:
                pending.timer.cancel()
            await self._bus.publish(Event(type=EventType.PERMISSION_RESOLVED, tool_use_id=tool_use_id))

        for prompt in prompts:
            self._register(prompt)

    def _register(self, prompt: PermissionPrompt) -> None:
        previous = self._pending.get(prompt.tool_use_id)
        if previous is not None and previous.timer is not None and not previous.fired:
            previous.timer.cancel()
        pending = _PendingPrompt(prompt=prompt)
        pending.timer = asyncio.create_task(self._promote_later(pending), name=f"permission-{prompt.tool_use_id}")
        self._pending[prompt.tool_use_id] = pending

    async def _promote_later(self, pending: _PendingPrompt) -> None:
        await asyncio.sleep(self._debounce)
        if self._pending.get(pending.prompt.tool_use_id) is not pending:
            return
        pending.fired = True
        logger.debug("Permission watcher: surfacing %s (%s)", pending.prompt.tool_use_id, pending.prompt.tool_name)
        await self._bus.publish(pending.prompt.to_event())

    def _clear_pending(self) -> None:
        for pending in self._pending.values():
            if pending.timer is not None and not pending.fired:
                pending.timer.cancel()
        self._pending.clear()

    @property
    def pending_ids(self) -> list[str]:
        return list(self._pending)
