from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.routing import APIRouter
from fastapi.staticfiles import StaticFiles
from loguru import logger

from agent_chat.chat_runtime.bus import EventBus
from agent_chat.chat_runtime.log import setup_logging
from agent_chat.chat_runtime.permissions import PermissionWatcher
from agent_chat.chat_runtime.settings import ChatSettings, get_settings
from agent_chat.chat_runtime.tools import ChatTools


async def _open_bus(settings: ChatSettings) -> EventBus:
    """Create the bus, durable when ``event_log`` is configured."""
    kwargs = {
        "queue_size": settings.message_queue_size,
        "mailbox_size": settings.subscriber_mailbox_size,
        "subscriber_timeout": settings.subscriber_wait_timeout,
    }
    if not settings.event_log:
        logger.info("AGENT_CHAT_EVENT_LOG not set -- history is kept in memory only")
        return EventBus(**kwargs)
    try:
        return await EventBus.open(settings.event_log, **kwargs)
    except OSError as exc:
        # Chat still works without the mirror; reconnect replay is per-process.
        logger.warning("Event log {}: cannot open ({}) -- falling back to memory", settings.event_log, exc)
        return EventBus(**kwargs)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    # -- Startup ---------------------------------------------------------------
    settings = get_settings()
    setup_logging(settings.log_level)
    logger.info("Agent chat starting (host={}, port={})", settings.host, settings.port)

    bus = await _open_bus(settings)
    _app.state.bus = bus
    _app.state.tools = ChatTools(bus)
    _app.state.watcher = None

    # -- Permission watcher ----------------------------------------------------
    if settings.session_log:
        watcher = PermissionWatcher(
            settings.session_log,
            bus,
            debounce=settings.permission_debounce,
            poll_interval=settings.watch_poll_interval,
        )
        watcher.start()
        _app.state.watcher = watcher
    else:
        logger.debug("AGENT_CHAT_SESSION_LOG not set -- permission prompts disabled")

    yield

    # -- Shutdown --------------------------------------------------------------
    logger.info("Agent chat shutting down (subscribers={})", bus.subscriber_count)
    if _app.state.watcher is not None:
        await _app.state.watcher.stop()
    await bus.close()


app = FastAPI(title="Agent Chat", lifespan=lifespan)

# ---------------------------------------------------------------------------
# API router -- plain HTTP endpoints live under /api
# ---------------------------------------------------------------------------
api = APIRouter(prefix="/api")


@api.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


from agent_chat.chat_runtime.routers.history import router as history_router  # noqa: E402
from agent_chat.chat_runtime.routers.ws import router as ws_router  # noqa: E402

api.include_router(history_router)

app.include_router(api)
app.include_router(ws_router)

# ---------------------------------------------------------------------------
# Static UI serving (mounted last so it never shadows /api or /ws)
# ---------------------------------------------------------------------------
_ui_dir = get_settings().ui_dir

if _ui_dir and Path(_ui_dir).is_dir():
    app.mount("/", StaticFiles(directory=_ui_dir, html=True), name="ui")
