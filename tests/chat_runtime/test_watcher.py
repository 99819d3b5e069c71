"""Tests for the debounced permission watcher."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

from agent_chat.chat_runtime.bus import EventBus, Subscriber
from agent_chat.chat_runtime.models import Event, EventType
from agent_chat.chat_runtime.permissions import PermissionWatcher

DEBOUNCE = 0.05


def _tool_use(tool_use_id: str, command: str = "make test") -> str:
    return json.dumps({
        "type": "assistant",
        "message": {
            "role": "assistant",
            "content": [{"type": "tool_use", "id": tool_use_id, "name": "Bash", "input": {"command": command}}],
        },
    })


def _tool_result(tool_use_id: str) -> str:
    return json.dumps({
        "type": "user",
        "message": {"role": "user", "content": [{"type": "tool_result", "tool_use_id": tool_use_id}]},
    })


def _drain(sub: Subscriber) -> list[Event]:
    events = []
    while sub.pending():
        events.append(sub.get_nowait())
    return events


async def test_quick_result_resolves_without_prompt(bus: EventBus, tmp_path: Path) -> None:
    sub = bus.subscribe()
    watcher = PermissionWatcher(tmp_path / "session.jsonl", bus, debounce=DEBOUNCE)

    await watcher.process_line(_tool_use("toolu_1"))
    await watcher.process_line(_tool_result("toolu_1"))
    await asyncio.sleep(DEBOUNCE * 3)

    events = _drain(sub)
    assert [(e.type, e.tool_use_id) for e in events] == [(EventType.PERMISSION_RESOLVED, "toolu_1")]
    assert watcher.pending_ids == []


async def test_unresolved_tool_prompts_once(bus: EventBus, tmp_path: Path) -> None:
    sub = bus.subscribe()
    watcher = PermissionWatcher(tmp_path / "session.jsonl", bus, debounce=DEBOUNCE)

    await watcher.process_line(_tool_use("toolu_2", "rm -rf build"))
    await asyncio.sleep(DEBOUNCE * 4)

    (prompt,) = _drain(sub)
    assert prompt.type == EventType.PERMISSION_PROMPT
    assert (prompt.tool_use_id, prompt.tool_name, prompt.text, prompt.detail) == (
        "toolu_2",
        "Bash",
        "rm -rf build",
        "rm -rf build",
    )
    assert watcher.pending_ids == ["toolu_2"]

    # Approved later: the UI retracts the prompt.
    await watcher.process_line(_tool_result("toolu_2"))
    (resolved,) = _drain(sub)
    assert resolved.type == EventType.PERMISSION_RESOLVED
    assert watcher.pending_ids == []


async def test_unknown_result_is_ignored(bus: EventBus, tmp_path: Path) -> None:
    sub = bus.subscribe()
    watcher = PermissionWatcher(tmp_path / "session.jsonl", bus, debounce=DEBOUNCE)
    await watcher.process_line(_tool_result("never-seen"))
    assert _drain(sub) == []


async def test_stop_cancels_timers(bus: EventBus, tmp_path: Path) -> None:
    sub = bus.subscribe()
    watcher = PermissionWatcher(tmp_path / "session.jsonl", bus, debounce=DEBOUNCE)

    await watcher.process_line(_tool_use("toolu_3"))
    await watcher.stop()
    await asyncio.sleep(DEBOUNCE * 3)

    assert _drain(sub) == []
    assert watcher.pending_ids == []


async def test_feed_waits_for_complete_lines(bus: EventBus, tmp_path: Path) -> None:
    watcher = PermissionWatcher(tmp_path / "session.jsonl", bus, debounce=DEBOUNCE)
    line = _tool_use("toolu_4").encode()

    await watcher.feed(line[:20])
    assert watcher.pending_ids == []
    await watcher.feed(line[20:] + b"\n\n")
    assert watcher.pending_ids == ["toolu_4"]
    await watcher.stop()


async def test_tails_only_new_content(bus: EventBus, tmp_path: Path) -> None:
    path = tmp_path / "session.jsonl"
    path.write_text(_tool_use("old") + "\n", encoding="utf-8")
    sub = bus.subscribe()
    watcher = PermissionWatcher(path, bus, debounce=DEBOUNCE, poll_interval=0.01)
    watcher.start()
    try:
        await asyncio.sleep(0.1)
        with path.open("a", encoding="utf-8") as fh:
            fh.write(_tool_use("new") + "\n")
        event = await asyncio.wait_for(sub.get(), timeout=2)
        assert (event.type, event.tool_use_id) == (EventType.PERMISSION_PROMPT, "new")
        await asyncio.sleep(DEBOUNCE * 2)
        assert _drain(sub) == []
    finally:
        await watcher.stop()


async def test_missing_file_ends_quietly(bus: EventBus, tmp_path: Path) -> None:
    watcher = PermissionWatcher(tmp_path / "absent.jsonl", bus)
    await asyncio.wait_for(watcher.run(), timeout=1)
