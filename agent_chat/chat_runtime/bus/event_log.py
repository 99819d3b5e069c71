"""Sequence-numbered event log with an optional JSONL mirror on disk.

The in-memory ``EventLog`` answers cursor queries for reconnecting tabs.  The
``EventLogWriter`` appends one JSON object per line to a durable file so that
history survives a restart; ``load_event_log`` reads that file back.

File format::

    {"type":"agentMessage","seq":1,"ts":1718000000000,"text":"hi","quick_replies":["ok"]}
    {"type":"userMessage","seq":2,"ts":1718000001000,"text":"ok"}

Lines that fail to parse are skipped on reload, never fatal.
"""

from __future__ import annotations

import bisect
import json
import os
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO

from loguru import logger
from pydantic import ValidationError

from agent_chat.chat_runtime.models.enums import EventType
from agent_chat.chat_runtime.models.events import Event


def derive_quick_replies(current: tuple[str, ...], event: Event) -> tuple[str, ...]:
    """Apply one event to the "last quick replies" state.

    Non-empty quick replies mean the agent is now waiting for input; a user
    message means the agent is working again.  Used both at publish time and
    when replaying a durable log.
    """
    if event.quick_replies:
        current = event.quick_replies
    if event.type == EventType.USER_MESSAGE:
        current = ()
    return current


def _seq_key(event: Event) -> int:
    return event.seq


class EventLog:
    """Append-only in-memory record of everything the bus has stored.

    ``_entries`` keeps every event in arrival order (including log-only
    entries with ``seq == 0``).  ``_sequenced`` holds only broadcast events in
    strictly increasing ``seq`` order and backs cursor lookups with bisect.
    """

    def __init__(self, events: Iterable[Event] = ()) -> None:
        self._entries: list[Event] = []
        self._sequenced: list[Event] = []
        self._max_seq = 0
        for event in events:
            self.append(event)

    def append(self, event: Event) -> None:
        """Store *event*.  Sequenced events are indexed by ``seq``.

        Live publishes arrive in order; a reloaded file may not, so an older
        ``seq`` is inserted at its place.  A repeated ``seq`` keeps the first
        copy in the index.
        """
        self._entries.append(event)
        if event.seq <= 0:
            return
        if event.seq > self._max_seq:
            self._sequenced.append(event)
            self._max_seq = event.seq
            return
        at = bisect.bisect_left(self._sequenced, event.seq, key=_seq_key)
        if at < len(self._sequenced) and self._sequenced[at].seq == event.seq:
            return
        self._sequenced.insert(at, event)

    def since(self, cursor: int) -> list[Event]:
        """Return events with ``seq > cursor`` in original order (a copy)."""
        start = bisect.bisect_right(self._sequenced, cursor, key=_seq_key)
        return self._sequenced[start:]

    def entries(self) -> list[Event]:
        """Return every stored event, log-only entries included."""
        return list(self._entries)

    def clear(self) -> None:
        """Forget stored events.  ``max_seq`` is kept so numbering continues."""
        self._entries.clear()
        self._sequenced.clear()

    @property
    def max_seq(self) -> int:
        return self._max_seq

    def __len__(self) -> int:
        return len(self._entries)


# -- Durable mirror ------------------------------------------------------------


@dataclass
class LoadedLog:
    """State reconstructed from a durable event log."""

    events: list[Event] = field(default_factory=list)
    max_seq: int = 0
    last_quick_replies: tuple[str, ...] = ()
    skipped: int = 0


def load_event_log(path: str | Path) -> LoadedLog:
    """Read a JSONL event log.  A missing file yields an empty result."""
    loaded = LoadedLog()
    try:
        fh = Path(path).open(encoding="utf-8")
    except FileNotFoundError:
        return loaded

    with fh:
        for line in fh:
            line = line.strip()
            if not line:
                continue
            try:
                event = Event.model_validate_json(line)
            except ValidationError:
                loaded.skipped += 1
                continue
            loaded.events.append(event)
            loaded.max_seq = max(loaded.max_seq, event.seq)
            loaded.last_quick_replies = derive_quick_replies(loaded.last_quick_replies, event)

    if loaded.skipped:
        logger.debug("Event log {}: skipped {} malformed lines", path, loaded.skipped)
    return loaded


class EventLogWriter:
    """Append-only JSONL writer.  Every write is flushed and fsynced.

    Not safe for concurrent use; the bus serialises calls with its log lock.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._file: IO[str] | None = self.path.open("a", encoding="utf-8")

    def write(self, event: Event) -> None:
        if self._file is None:
            return
        self._file.write(json.dumps(event.to_wire(), ensure_ascii=False) + "\n")
        self._file.flush()
        os.fsync(self._file.fileno())

    def close(self) -> None:
        if self._file is None:
            return
        try:
            self._file.flush()
            os.fsync(self._file.fileno())
        finally:
            self._file.close()
            self._file = None

    @property
    def closed(self) -> bool:
        return self._file is None
