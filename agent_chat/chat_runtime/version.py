"""Package version, reported in the WebSocket handshake and by the CLI."""

__version__ = "0.1.0"
