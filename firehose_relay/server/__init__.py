"""HTTP/WebSocket server for the relay."""

from .app import create_app, list_locales, parse_command

__all__ = ["create_app", "list_locales", "parse_command"]
