"""Shared test fixtures.

Settings are cached process-wide; every test starts from a clean
``AGENT_CHAT_*`` environment and an empty cache.
"""

from __future__ import annotations

import os
from collections.abc import Iterator

import pytest

from agent_chat.chat_runtime.bus import EventBus
from agent_chat.chat_runtime.settings import _get_settings_cached


@pytest.fixture(autouse=True)
def _clean_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for key in list(os.environ):
        if key.startswith("AGENT_CHAT_"):
            monkeypatch.delenv(key)
    _get_settings_cached.cache_clear()
    yield
    _get_settings_cached.cache_clear()


@pytest.fixture
async def bus() -> EventBus:
    """In-memory bus with short waits."""
    return EventBus(subscriber_timeout=1.0)
