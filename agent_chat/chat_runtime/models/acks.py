"""Acknowledgement results.

A blocking ack resolves either bare ("Continue" clicked) or with a reply
text.  The raw wire ``message`` string is converted exactly once, here.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class BareAck:
    """The viewer acknowledged without saying anything."""


@dataclass(frozen=True)
class MessageAck:
    """The viewer acknowledged with a reply text."""

    text: str


AckResult = BareAck | MessageAck


def parse_ack_reply(message: str | None) -> AckResult:
    """Map the ``message`` field of an ``ack`` frame to an ``AckResult``."""
    if not message:
        return BareAck()
    return MessageAck(text=message)
