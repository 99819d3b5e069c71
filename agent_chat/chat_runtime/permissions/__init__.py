"""Permission prompt detection from the agent's session transcript."""

from agent_chat.chat_runtime.permissions.parser import parse_transcript_line, tool_use_to_prompt
from agent_chat.chat_runtime.permissions.watcher import PermissionWatcher

__all__ = ["PermissionWatcher", "parse_transcript_line", "tool_use_to_prompt"]
