"""Agent-facing chat tools.

``ChatTools`` is what the agent's RPC transport calls into.  Each method maps
to one tool: the blocking ones wait for a browser tab to be listening, publish
and then wait for the human; the progress ones publish and return at once.

Reply wording is left to the transport.  Results come back as ``ToolReply``
(the user's messages plus whether they spoke) or as an ``AckResult`` for
``draw``.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

from loguru import logger
from pydantic import BaseModel

from agent_chat.chat_runtime.bus import EventBus
from agent_chat.chat_runtime.models.acks import AckResult
from agent_chat.chat_runtime.models.enums import EventType
from agent_chat.chat_runtime.models.events import Event, FileRef, UserMessage

VOICE_PREFIX = "\U0001f3a4 "


class VoiceModeError(ValueError):
    """Raised when a text reply is attempted while the user is speaking."""


class ToolReply(BaseModel):
    """What the human answered, with voice prefixes stripped."""

    messages: list[UserMessage]
    voice: bool = False


def is_voice_batch(messages: Iterable[UserMessage]) -> bool:
    """True if any message in the batch was dictated."""
    return any(m.text.startswith(VOICE_PREFIX) for m in messages)


def _strip_voice(message: UserMessage) -> UserMessage:
    if not message.text.startswith(VOICE_PREFIX):
        return message
    return message.model_copy(update={"text": message.text.removeprefix(VOICE_PREFIX)})


def _quick_replies(quick_reply: str, more: Sequence[str]) -> tuple[str, ...]:
    return tuple(r for r in (quick_reply, *more) if r)


class ChatTools:
    def __init__(self, bus: EventBus, *, subscriber_timeout: float | None = None) -> None:
        self._bus = bus
        self._subscriber_timeout = subscriber_timeout

    # -- Blocking ----------------------------------------------------------------

    async def send_message(
        self,
        text: str,
        quick_reply: str = "",
        more_quick_replies: Sequence[str] = (),
        files: Iterable[FileRef] = (),
        *,
        timeout: float | None = None,
    ) -> ToolReply:
        """Post a chat bubble and wait for the user's answer.

        Refused with ``VoiceModeError`` when the last answer was spoken; the
        agent must use ``send_verbal_reply`` then.
        """
        if self._bus.last_voice:
            raise VoiceModeError("The user is in voice mode. Use send_verbal_reply instead of send_message.")
        return await self._reply(EventType.AGENT_MESSAGE, text, quick_reply, more_quick_replies, files, timeout)

    async def send_verbal_reply(
        self,
        text: str,
        quick_reply: str = "",
        more_quick_replies: Sequence[str] = (),
        files: Iterable[FileRef] = (),
        *,
        timeout: float | None = None,
    ) -> ToolReply:
        """Speak a reply in the browser and wait for the user's answer."""
        return await self._reply(EventType.VERBAL_REPLY, text, quick_reply, more_quick_replies, files, timeout)

    async def draw(
        self,
        text: str,
        instructions: list[Any],
        quick_reply: str = "",
        more_quick_replies: Sequence[str] = (),
        *,
        timeout: float | None = None,
    ) -> AckResult:
        """Show a canvas slide and wait until a viewer acknowledges it."""
        await self._bus.wait_for_subscriber(self._subscriber_timeout)
        await self._bus.publish(Event(type=EventType.AGENT_MESSAGE, text=text))

        ack = self._bus.create_ack()
        await self._bus.publish(
            Event(
                type=EventType.DRAW,
                instructions=instructions,
                quick_replies=_quick_replies(quick_reply, more_quick_replies),
                ack_id=ack.token,
            )
        )
        return await self._bus.wait_ack(ack, timeout=timeout)

    async def _reply(
        self,
        event_type: EventType,
        text: str,
        quick_reply: str,
        more_quick_replies: Sequence[str],
        files: Iterable[FileRef],
        timeout: float | None,
    ) -> ToolReply:
        await self._bus.wait_for_subscriber(self._subscriber_timeout)
        await self._bus.publish(
            Event(
                type=event_type,
                text=text,
                quick_replies=_quick_replies(quick_reply, more_quick_replies),
                files=tuple(files),
            )
        )
        messages = await self._bus.wait_for_messages(timeout)
        return self._consume(messages)

    # -- Non-blocking ------------------------------------------------------------

    async def send_progress(self, text: str, files: Iterable[FileRef] = ()) -> None:
        await self._bus.publish(Event(type=EventType.AGENT_MESSAGE, text=text, files=tuple(files)))

    async def send_verbal_progress(self, text: str, files: Iterable[FileRef] = ()) -> None:
        await self._bus.publish(Event(type=EventType.VERBAL_REPLY, text=text, files=tuple(files)))

    def check_messages(self) -> ToolReply | None:
        """Drain queued messages.  ``None`` if the user has not said anything."""
        messages = self._bus.drain_messages()
        if not messages:
            return None
        return self._consume(messages)

    def _consume(self, messages: list[UserMessage]) -> ToolReply:
        voice = is_voice_batch(messages)
        self._bus.set_last_voice(voice)
        logger.debug("Consumed {} user message(s) (voice={})", len(messages), voice)
        return ToolReply(messages=[_strip_voice(m) for m in messages], voice=voice)
