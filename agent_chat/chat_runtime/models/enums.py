"""Shared enumerations used across the chat runtime."""

from __future__ import annotations

from enum import StrEnum

# -- Events ------------------------------------------------------------------


class EventType(StrEnum):
    """Kinds of events published on the bus and streamed to browser tabs."""

    # Conversation
    AGENT_MESSAGE = "agentMessage"
    VERBAL_REPLY = "verbalReply"
    USER_MESSAGE = "userMessage"

    # Canvas
    DRAW = "draw"

    # Permission watcher
    PERMISSION_PROMPT = "permissionPrompt"
    PERMISSION_RESOLVED = "permissionResolved"


# -- Wire frames -------------------------------------------------------------


class ServerFrameType(StrEnum):
    """Control frames that are not bus events."""

    CONNECTED = "connected"
    MESSAGE_QUEUED = "messageQueued"


# -- Connection --------------------------------------------------------------


class ConnectionState(StrEnum):
    CONNECTING = "connecting"
    STREAMING = "streaming"
    CLOSED = "closed"
