"""Core data models for the firehose relay."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class ConnectionMode(Enum):
    """Actual upstream socket state."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class ControlState(Enum):
    """User intent, tracked independently of the socket state."""
    STOPPED = "stopped"
    RUNNING = "running"
    PAUSED = "paused"


class EndpointRole(Enum):
    """Which upstream endpoint is targeted."""
    PRIMARY = "primary"
    FALLBACK = "fallback"


class SourceMode(Enum):
    """Declared message format of an upstream endpoint."""
    JSON_PRIMARY = "json-primary"
    BINARY_PRIMARY = "binary-primary"


class SourceFormat(Enum):
    """How a single upstream message was actually decoded."""
    JETSTREAM_JSON = "jetstream-json"
    FIREHOSE_CBOR = "firehose-cbor"
    FIREHOSE_JSON_FALLBACK = "firehose-json-fallback"
    RAW_UNPARSED = "raw-unparsed"


class MessageKind(Enum):
    """Downstream message kinds."""
    STATUS = "status"
    STATS = "stats"
    EVENT = "event"


@dataclass
class ConnectionState:
    """Process-wide upstream connection state, owned by the connection manager."""
    mode: ConnectionMode = ConnectionMode.DISCONNECTED
    control_state: ControlState = ControlState.STOPPED
    active_endpoint: EndpointRole = EndpointRole.PRIMARY
    started_at: Optional[float] = None  # epoch seconds of last successful open

    @property
    def connected(self) -> bool:
        return self.mode == ConnectionMode.CONNECTED

    @property
    def paused(self) -> bool:
        return self.control_state == ControlState.PAUSED


@dataclass
class NormalizedEvent:
    """One decoded upstream message."""
    timestamp: str  # ISO-8601 UTC receipt time
    source_format: SourceFormat
    payload: Optional[Any]
    raw_bytes: str
    raw_base64: Optional[str] = None

    @property
    def decoded(self) -> bool:
        # a JSON `null` message decodes to payload None
        return self.source_format != SourceFormat.RAW_UNPARSED


@dataclass
class RateStats:
    """Rate metrics snapshot."""
    events_per_second: int = 0
    bytes_per_second: int = 0
    total_events: int = 0
    total_bytes: int = 0
    start_time: Optional[int] = None  # epoch milliseconds


@dataclass
class StatusUpdate:
    """Connection status as seen by downstream subscribers."""
    connected: bool
    paused: bool
    message: str
