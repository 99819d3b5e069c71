"""In-process event bus: event log, subscribers, acks and the message queue."""

from agent_chat.chat_runtime.bus.acks import AckRegistry, AckTimeoutError, PendingAck
from agent_chat.chat_runtime.bus.event_bus import EventBus, MessageTimeoutError
from agent_chat.chat_runtime.bus.event_log import EventLog, EventLogWriter, LoadedLog, load_event_log
from agent_chat.chat_runtime.bus.subscribers import Subscriber, SubscriberRegistry, SubscriberTimeoutError

__all__ = [
    "AckRegistry",
    "AckTimeoutError",
    "EventBus",
    "EventLog",
    "EventLogWriter",
    "LoadedLog",
    "MessageTimeoutError",
    "PendingAck",
    "Subscriber",
    "SubscriberRegistry",
    "SubscriberTimeoutError",
    "load_event_log",
]
