"""Structured logging for relay monitoring."""

import json
import logging
from typing import Optional


class StructuredLogger:
    """Structured logger with uniform schema."""

    def __init__(self, name: str = "firehose_relay", level: str = "INFO"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, level.upper()))

        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter('%(message)s'))
            self.logger.addHandler(handler)

    def log(self, event: str, level: int = logging.INFO, **kwargs) -> None:
        """
        Log structured event.

        Standard keys: event, endpoint, url, mode, control, error, subscribers,
                      command, events_per_second, bytes_per_second
        """
        if not self.logger.isEnabledFor(level):
            return
        log_data = {"event": event, **kwargs}
        self.logger.log(level, json.dumps(log_data, default=str))

    def upstream_connect(self, endpoint: str, url: str) -> None:
        self.log("upstream_connect", endpoint=endpoint, url=url)

    def upstream_open(self, endpoint: str) -> None:
        self.log("upstream_open", endpoint=endpoint)

    def upstream_close(self, endpoint: str) -> None:
        self.log("upstream_close", endpoint=endpoint)

    def upstream_error(self, endpoint: str, error: str) -> None:
        self.log("upstream_error", level=logging.ERROR, endpoint=endpoint, error=error)

    def fallback_scheduled(self, endpoint: str, delay: float) -> None:
        self.log("fallback_scheduled", level=logging.WARNING, endpoint=endpoint, delay=delay)

    def fallback_exhausted(self) -> None:
        self.log("fallback_exhausted", level=logging.ERROR)

    def control_command(self, command: str, mode: str, control: str) -> None:
        self.log("control_command", command=command, mode=mode, control=control)

    def unknown_command(self, command: str) -> None:
        self.log("unknown_command", level=logging.WARNING, command=command)

    def decode_failure(self, source_mode: str, error: str, size: int) -> None:
        self.log("decode_failure", level=logging.DEBUG, source_mode=source_mode, error=error, size=size)

    def message_failed(self, endpoint: str, error: str) -> None:
        self.log("message_failed", level=logging.ERROR, endpoint=endpoint, error=error)

    def subscriber_added(self, subscribers: int) -> None:
        self.log("subscriber_added", subscribers=subscribers)

    def subscriber_removed(self, subscribers: int) -> None:
        self.log("subscriber_removed", subscribers=subscribers)

    def broadcast_failed(self, kind: str, error: str) -> None:
        self.log("broadcast_failed", level=logging.WARNING, kind=kind, error=error)

    def stats_tick(self, events_per_second: int, bytes_per_second: int) -> None:
        self.log("stats_tick", level=logging.DEBUG,
                 events_per_second=events_per_second, bytes_per_second=bytes_per_second)

    def locales_failed(self, path: str, error: Optional[str]) -> None:
        self.log("locales_failed", level=logging.ERROR, path=path, error=error)
