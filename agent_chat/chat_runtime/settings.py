"""Service configuration loaded from AGENT_CHAT_* environment variables."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ChatSettings(BaseSettings):
    """Agent chat server settings.

    All fields are read from environment variables with the ``AGENT_CHAT_``
    prefix.  For example, ``AGENT_CHAT_EVENT_LOG=/tmp/chat.jsonl`` maps to
    ``event_log``.
    """

    model_config = SettingsConfigDict(
        env_prefix="AGENT_CHAT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- Logging ---------------------------------------------------------------
    log_level: str = "INFO"

    # -- Server ----------------------------------------------------------------
    host: str = "127.0.0.1"
    port: int = 8765

    ui_dir: str | None = None
    """Directory with the built browser UI.  Served at ``/`` when set."""

    # -- Event bus -------------------------------------------------------------
    event_log: str | None = None
    """JSONL file mirroring every event.  In-memory only when unset."""

    message_queue_size: int = Field(default=256, gt=0)
    subscriber_mailbox_size: int = Field(default=64, gt=0)
    subscriber_wait_timeout: float = Field(default=30.0, gt=0)
    """Ceiling for how long a reply waits for a browser tab to connect."""

    # -- Permission watcher ----------------------------------------------------
    session_log: str | None = None
    """Agent session transcript to tail for permission prompts."""

    permission_debounce: float = Field(default=1.5, ge=0)
    watch_poll_interval: float = Field(default=0.2, gt=0)


def get_settings() -> ChatSettings:
    """Return a cached settings instance.

    Call ``_get_settings_cached.cache_clear()`` in tests to force a re-read
    after overriding env vars.
    """
    return _get_settings_cached()


@lru_cache(maxsize=1)
def _get_settings_cached() -> ChatSettings:
    return ChatSettings()
