"""Unit tests for transcript line parsing."""

from __future__ import annotations

import json
from typing import Any

import pytest

from agent_chat.chat_runtime.models import EventType
from agent_chat.chat_runtime.permissions import parse_transcript_line, tool_use_to_prompt


def _tool_use_line(tool_use_id: str, name: str, tool_input: Any) -> str:
    return json.dumps({
        "type": "assistant",
        "message": {
            "role": "assistant",
            "content": [
                {"type": "text", "text": "Let me check."},
                {"type": "tool_use", "id": tool_use_id, "name": name, "input": tool_input},
            ],
        },
    })


def _tool_result_line(*tool_use_ids: str) -> str:
    return json.dumps({
        "type": "user",
        "message": {
            "role": "user",
            "content": [{"type": "tool_result", "tool_use_id": i, "content": "ok"} for i in tool_use_ids],
        },
    })


@pytest.mark.parametrize(
    ("name", "tool_input", "title", "detail"),
    [
        ("Bash", {"command": "rm -rf build", "description": "Clean build dir"}, "Clean build dir", "rm -rf build"),
        ("Bash", {"command": "ls -la"}, "ls -la", "ls -la"),
        ("Read", {"file_path": "/src/main.py"}, "Read /src/main.py", "/src/main.py"),
        ("Write", {"file_path": "/src/new.py", "content": "x"}, "Write /src/new.py", "/src/new.py"),
        ("Edit", {"file_path": "/src/app.py"}, "Edit /src/app.py", "/src/app.py"),
        ("Glob", {"pattern": "**/*.py", "path": "/src"}, "Search for **/*.py", "/src"),
        ("Grep", {"pattern": "TODO"}, "Search for 'TODO'", ""),
        ("WebFetch", {"url": "https://example.com"}, "WebFetch", ""),
    ],
)
def test_tool_use_titles(name: str, tool_input: dict[str, Any], title: str, detail: str) -> None:
    prompts, resolved = parse_transcript_line(_tool_use_line("toolu_1", name, tool_input))
    assert resolved == []
    assert len(prompts) == 1
    assert prompts[0].tool_use_id == "toolu_1"
    assert prompts[0].tool_name == name
    assert (prompts[0].title, prompts[0].detail) == (title, detail)


def test_tool_use_without_input_object() -> None:
    prompt = tool_use_to_prompt({"type": "tool_use", "id": "t", "name": "Bash", "input": "raw"})
    assert (prompt.title, prompt.detail) == ("Bash", "")


def test_tool_results() -> None:
    prompts, resolved = parse_transcript_line(_tool_result_line("toolu_1", "toolu_2"))
    assert prompts == []
    assert resolved == ["toolu_1", "toolu_2"]


def test_prompt_to_event() -> None:
    (prompt,), _ = parse_transcript_line(_tool_use_line("toolu_9", "Bash", {"command": "make"}))
    event = prompt.to_event()
    assert event.type == EventType.PERMISSION_PROMPT
    assert event.to_wire() == {
        "type": "permissionPrompt",
        "seq": 0,
        "text": "make",
        "tool_use_id": "toolu_9",
        "tool_name": "Bash",
        "detail": "make",
    }


@pytest.mark.parametrize(
    "line",
    [
        "",
        "{not json",
        "[]",
        json.dumps({"type": "summary", "summary": "x"}),
        json.dumps({"type": "user", "message": {"role": "user", "content": "plain text"}}),
        json.dumps({"type": "assistant", "message": {"role": "user", "content": []}}),
        json.dumps({"type": "assistant", "message": "oops"}),
    ],
)
def test_irrelevant_lines(line: str) -> None:
    assert parse_transcript_line(line) == ([], [])
