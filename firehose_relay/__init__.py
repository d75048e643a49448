"""Bluesky firehose relay: upstream connection manager, decoder and WebSocket fan-out."""

__version__ = "1.0.0"
