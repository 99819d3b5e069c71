"""Parse agent session transcript lines into permission prompts.

The transcript is an append-only JSONL file written by the coding agent, not
by us.  Two entry shapes matter::

    {"type": "assistant", "message": {"role": "assistant",
        "content": [{"type": "tool_use", "id": "toolu_1", "name": "Bash",
                     "input": {"command": "ls", "description": "List files"}}]}}

    {"type": "user", "message": {"role": "user",
        "content": [{"type": "tool_result", "tool_use_id": "toolu_1"}]}}

A ``tool_use`` is a candidate prompt; a ``tool_result`` with the same id
means the invocation finished.  Everything else is ignored.
"""

from __future__ import annotations

import json
from typing import Any

from agent_chat.chat_runtime.models.permission import PermissionPrompt


def parse_transcript_line(line: str | bytes) -> tuple[list[PermissionPrompt], list[str]]:
    """Return ``(prompts, resolved_tool_use_ids)`` found in one line.

    Malformed or irrelevant lines yield two empty lists.
    """
    try:
        entry = json.loads(line)
    except (ValueError, TypeError):
        return [], []
    if not isinstance(entry, dict):
        return [], []

    message = entry.get("message")
    if not isinstance(message, dict):
        return [], []

    match entry.get("type"):
        case "assistant":
            return _parse_tool_uses(message), []
        case "user":
            return [], _parse_tool_results(message)
        case _:
            return [], []


def _content_blocks(message: dict[str, Any], role: str) -> list[dict[str, Any]]:
    if message.get("role") != role:
        return []
    content = message.get("content")
    # Plain-text content (a string) carries no tool blocks.
    if not isinstance(content, list):
        return []
    return [block for block in content if isinstance(block, dict)]


def _parse_tool_uses(message: dict[str, Any]) -> list[PermissionPrompt]:
    return [
        tool_use_to_prompt(block)
        for block in _content_blocks(message, "assistant")
        if block.get("type") == "tool_use"
    ]


def _parse_tool_results(message: dict[str, Any]) -> list[str]:
    ids: list[str] = []
    for block in _content_blocks(message, "user"):
        if block.get("type") != "tool_result":
            continue
        tool_use_id = block.get("tool_use_id")
        if isinstance(tool_use_id, str) and tool_use_id:
            ids.append(tool_use_id)
    return ids


def _str_field(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    return value if isinstance(value, str) else ""


def tool_use_to_prompt(block: dict[str, Any]) -> PermissionPrompt:
    """Build a human-readable prompt for one ``tool_use`` block."""
    name = _str_field(block, "name")
    prompt = PermissionPrompt(tool_use_id=_str_field(block, "id"), tool_name=name, title=name)

    tool_input = block.get("input")
    if not isinstance(tool_input, dict):
        return prompt

    match name:
        case "Bash":
            command = _str_field(tool_input, "command")
            prompt.title = _str_field(tool_input, "description") or command
            prompt.detail = command
        case "Read" | "Write" | "Edit":
            path = _str_field(tool_input, "file_path")
            prompt.title = f"{name} {path}"
            prompt.detail = path
        case "Glob":
            prompt.title = f"Search for {_str_field(tool_input, 'pattern')}"
            prompt.detail = _str_field(tool_input, "path")
        case "Grep":
            prompt.title = f"Search for '{_str_field(tool_input, 'pattern')}'"
            prompt.detail = _str_field(tool_input, "path")
    return prompt
