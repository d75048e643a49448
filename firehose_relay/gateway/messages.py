"""JSON message formatter for downstream subscribers.

This module turns relay values into the three downstream wire shapes. Keys are
camelCase because the browser client reads them directly.

Example frames:
    {"type": "status", "data": {"connected": true, "paused": false,
                                "message": "Connected to JetStream"}}
    {"type": "stats", "data": {"eventsPerSecond": 412, "bytesPerSecond": 530112,
                               "totalEvents": 10240, "totalBytes": 13107200,
                               "startTime": 1760851200000}}
    {"type": "event", "data": {"timestamp": "2025-10-19T05:20:00+00:00",
                               "sourceFormat": "jetstream-json",
                               "event": {...}, "raw": "{...}"}}
"""

from typing import Any, Dict, Union

from firehose_relay.models.data_models import (
    MessageKind,
    NormalizedEvent,
    RateStats,
    StatusUpdate,
)


class MessageFormatter:
    """Formats status, stats and event values as JSON-serializable dictionaries."""

    def format(self, kind: Union[MessageKind, str], value: Any) -> Dict[str, Any]:
        """
        Format a value for the given message kind.

        Dictionaries are assumed to be already formatted and pass through.

        Args:
            kind: Message kind
            value: StatusUpdate, RateStats, NormalizedEvent or a preformatted dict

        Returns:
            Wire payload for the kind
        """
        if isinstance(value, dict):
            return value

        kind = MessageKind(kind)
        if kind == MessageKind.STATUS:
            return self.format_status(value)
        if kind == MessageKind.STATS:
            return self.format_stats(value)
        return self.format_event(value)

    def format_status(self, status: StatusUpdate) -> Dict[str, Any]:
        return {
            "connected": status.connected,
            "paused": status.paused,
            "message": status.message,
        }

    def format_stats(self, stats: RateStats) -> Dict[str, Any]:
        return {
            "eventsPerSecond": stats.events_per_second,
            "bytesPerSecond": stats.bytes_per_second,
            "totalEvents": stats.total_events,
            "totalBytes": stats.total_bytes,
            "startTime": stats.start_time,
        }

    def format_event(self, event: NormalizedEvent) -> Dict[str, Any]:
        """Event frames carry the payload, or its raw representation when decoding failed."""
        return {
            "timestamp": event.timestamp,
            "sourceFormat": event.source_format.value,
            "event": event.payload if event.decoded else event.raw_bytes,
            "raw": event.raw_bytes,
        }

    def frame(self, kind: Union[MessageKind, str], value: Any) -> Dict[str, Any]:
        """Wrap a formatted payload in the `{"type", "data"}` envelope."""
        kind = MessageKind(kind)
        return {"type": kind.value, "data": self.format(kind, value)}
