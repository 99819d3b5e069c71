"""loguru setup for the chat server.

uvicorn and starlette log through stdlib ``logging``, as do a few of our own
modules; everything is routed into loguru so there is one format and one
level switch.
"""

from __future__ import annotations

import logging
import sys

from loguru import logger

LOG_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

QUIET_LOGGERS = ("uvicorn.access", "watchfiles")

# uvicorn announces every WebSocket open/close at INFO.  Browser tabs
# reconnect constantly, so these are demoted to DEBUG.
RECONNECT_NOISE = frozenset({
    ("uvicorn.error", "connection open"),
    ("uvicorn.error", "connection closed"),
})


def _loguru_level(record: logging.LogRecord) -> str | int:
    if record.levelno == logging.INFO and (record.name, record.getMessage()) in RECONNECT_NOISE:
        return "DEBUG"
    try:
        return logger.level(record.levelname).name
    except ValueError:
        return record.levelno


class _InterceptHandler(logging.Handler):
    """Bridge stdlib logging records into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        level = _loguru_level(record)

        # Skip logging's own frames so loguru reports the real call site.
        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(level: str = "INFO") -> None:
    """Make loguru the only sink.  Safe to call again to change the level."""
    level = level.upper()

    logger.remove()
    # stderr: stdout may be the agent's RPC channel.
    logger.add(sys.stderr, level=level, format=LOG_FORMAT)

    logging.basicConfig(handlers=[_InterceptHandler()], level=0, force=True)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.debug("Logging configured (level={})", level)
