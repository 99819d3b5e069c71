import os

import click

from agent_chat.chat_runtime.version import __version__


@click.group()
def main() -> None:
    """Agent Chat - a browser chat window for a coding agent."""


@main.command()
@click.option("--host", default=None, help="Bind host (default: from AGENT_CHAT_HOST or 127.0.0.1).")
@click.option("--port", default=None, type=int, help="Bind port (default: from AGENT_CHAT_PORT or 8765).")
@click.option(
    "--event-log",
    default=None,
    type=click.Path(dir_okay=False),
    help="JSONL file that keeps chat history across restarts.",
)
@click.option(
    "--watch",
    default=None,
    type=click.Path(dir_okay=False),
    help="Agent session transcript to watch for permission prompts.",
)
@click.option("--reload", is_flag=True, default=False, help="Enable auto-reload for development.")
def serve(host: str | None, port: int | None, event_log: str | None, watch: str | None, reload: bool) -> None:
    """Start the chat server."""
    import uvicorn

    from agent_chat.chat_runtime.settings import _get_settings_cached, get_settings

    # Settings are read inside the app (possibly in a reload subprocess), so
    # CLI overrides travel through the environment.
    if event_log:
        os.environ["AGENT_CHAT_EVENT_LOG"] = event_log
    if watch:
        os.environ["AGENT_CHAT_SESSION_LOG"] = watch
    _get_settings_cached.cache_clear()
    settings = get_settings()

    uvicorn.run(
        "agent_chat.chat_runtime.app:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_level="warning",  # uvicorn's own logging is intercepted by loguru
    )


@main.command()
def version() -> None:
    """Print the installed version."""
    click.echo(__version__)


if __name__ == "__main__":
    main()
