"""Unit tests for the in-memory event log and its JSONL mirror."""

from __future__ import annotations

import json
from pathlib import Path

from agent_chat.chat_runtime.bus.event_log import (
    EventLog,
    EventLogWriter,
    derive_quick_replies,
    load_event_log,
)
from agent_chat.chat_runtime.models import Event, EventType, FileRef


def _event(seq: int, text: str = "", **kwargs) -> Event:
    return Event(type=kwargs.pop("type", EventType.AGENT_MESSAGE), seq=seq, ts=1, text=text, **kwargs)


# ---------------------------------------------------------------------------
# EventLog
# ---------------------------------------------------------------------------


def test_since_returns_events_after_cursor_in_order() -> None:
    log = EventLog(_event(seq) for seq in range(1, 6))
    assert [e.seq for e in log.since(0)] == [1, 2, 3, 4, 5]
    assert [e.seq for e in log.since(3)] == [4, 5]
    assert log.since(5) == []


def test_since_skips_log_only_entries() -> None:
    log = EventLog([_event(1), _event(0, "note"), _event(2)])
    assert [e.seq for e in log.since(0)] == [1, 2]
    assert len(log) == 3
    assert [e.text for e in log.entries()] == ["", "note", ""]


def test_since_returns_a_copy() -> None:
    log = EventLog([_event(1)])
    snapshot = log.since(0)
    log.append(_event(2))
    assert [e.seq for e in snapshot] == [1]


def test_clear_keeps_max_seq() -> None:
    log = EventLog([_event(1), _event(7)])
    log.clear()
    assert len(log) == 0
    assert log.since(0) == []
    assert log.max_seq == 7


# ---------------------------------------------------------------------------
# Quick replies derivation
# ---------------------------------------------------------------------------


def test_quick_replies_set_then_cleared_by_user_message() -> None:
    state = derive_quick_replies((), _event(1, quick_replies=("Yes", "No")))
    assert state == ("Yes", "No")
    state = derive_quick_replies(state, _event(2, "progress"))
    assert state == ("Yes", "No")
    state = derive_quick_replies(state, _event(3, "Yes", type=EventType.USER_MESSAGE))
    assert state == ()


# ---------------------------------------------------------------------------
# Durable mirror
# ---------------------------------------------------------------------------


def test_load_missing_file_is_empty(tmp_path: Path) -> None:
    loaded = load_event_log(tmp_path / "absent.jsonl")
    assert loaded.events == []
    assert loaded.max_seq == 0


def test_writer_then_load(tmp_path: Path) -> None:
    path = tmp_path / "events.jsonl"
    writer = EventLogWriter(path)
    writer.write(_event(1, "hello", quick_replies=("ok",)))
    writer.write(
        _event(
            2,
            "see file",
            files=(FileRef(name="a.png", server_path="/tmp/a.png", public_url="/uploads/a.png", size_bytes=3),),
        )
    )
    writer.close()
    assert writer.closed

    first = json.loads(path.read_text(encoding="utf-8").splitlines()[0])
    assert first == {"type": "agentMessage", "seq": 1, "ts": 1, "text": "hello", "quick_replies": ["ok"]}

    loaded = load_event_log(path)
    assert [e.seq for e in loaded.events] == [1, 2]
    assert loaded.max_seq == 2
    assert loaded.last_quick_replies == ("ok",)
    assert loaded.events[1].files[0].public_url == "/uploads/a.png"


def test_load_skips_malformed_lines(tmp_path: Path) -> None:
    path = tmp_path / "events.jsonl"
    path.write_text(
        "\n".join([
            '{"type":"agentMessage","seq":1,"text":"a"}',
            "not json",
            '{"type":"noSuchType","seq":2}',
            "",
            '{"type":"userMessage","seq":4,"text":"b"}',
        ])
        + "\n",
        encoding="utf-8",
    )
    loaded = load_event_log(path)
    assert [e.seq for e in loaded.events] == [1, 4]
    assert loaded.max_seq == 4
    assert loaded.skipped == 2


def test_writer_close_is_idempotent(tmp_path: Path) -> None:
    writer = EventLogWriter(tmp_path / "events.jsonl")
    writer.close()
    writer.close()
    writer.write(_event(1))
    assert (tmp_path / "events.jsonl").read_text(encoding="utf-8") == ""


def test_out_of_order_append_is_indexed() -> None:
    log = EventLog([_event(1), _event(3), _event(2), _event(2, "again"), _event(0, "note")])
    assert [e.seq for e in log.since(0)] == [1, 2, 3]
    assert [e.seq for e in log.since(1)] == [2, 3]
    assert log.since(2)[0].seq == 3
    assert log.since(1)[0].text == ""
    assert len(log) == 5
    assert log.max_seq == 3


def test_reload_out_of_order_file(tmp_path: Path) -> None:
    path = tmp_path / "events.jsonl"
    path.write_text(
        "\n".join([
            '{"type":"agentMessage","seq":1,"text":"a"}',
            '{"type":"agentMessage","seq":3,"text":"c"}',
            '{"type":"agentMessage","seq":2,"text":"b"}',
        ])
        + "\n",
        encoding="utf-8",
    )
    loaded = load_event_log(path)
    log = EventLog(loaded.events)
    assert [e.text for e in log.since(0)] == ["a", "b", "c"]
    assert [e.text for e in log.since(1)] == ["b", "c"]
    assert loaded.max_seq == 3
