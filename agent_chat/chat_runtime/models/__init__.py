"""Data models for the chat runtime."""

from agent_chat.chat_runtime.models.acks import AckResult, BareAck, MessageAck, parse_ack_reply
from agent_chat.chat_runtime.models.api import HistoryResponse
from agent_chat.chat_runtime.models.enums import (
    ConnectionState,
    EventType,
    ServerFrameType,
)
from agent_chat.chat_runtime.models.events import Event, FileRef, UserMessage, now_ms
from agent_chat.chat_runtime.models.frames import (
    MESSAGE_QUEUED_FRAME,
    AckFrame,
    ConnectedFrame,
    MessageFrame,
    parse_client_frame,
)
from agent_chat.chat_runtime.models.permission import PermissionPrompt

__all__ = [
    "MESSAGE_QUEUED_FRAME",
    "AckFrame",
    "AckResult",
    "BareAck",
    "ConnectedFrame",
    "ConnectionState",
    "Event",
    "EventType",
    "FileRef",
    "HistoryResponse",
    "MessageAck",
    "MessageFrame",
    "PermissionPrompt",
    "ServerFrameType",
    "UserMessage",
    "now_ms",
    "parse_ack_reply",
    "parse_client_frame",
]
