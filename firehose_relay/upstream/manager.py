"""Upstream connection manager with one-shot protocol fallback."""

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

from firehose_relay.decoder import decode
from firehose_relay.models.config import EndpointConfig, RelayConfig
from firehose_relay.models.data_models import (
    ConnectionMode,
    ConnectionState,
    ControlState,
    EndpointRole,
    MessageKind,
    StatusUpdate,
)
from firehose_relay.monitoring.logger import StructuredLogger
from firehose_relay.stats.aggregator import StatsAggregator
from firehose_relay.upstream.connector import UpstreamConnector


class UpstreamConnectionManager:
    """
    Owns the single upstream subscription.

    State machine over (mode, control_state, active_endpoint):
    - start() connects to the primary (JSON) endpoint unless a socket is live
    - A primary error schedules exactly one fallback attempt against the
      binary endpoint after `fallback_delay`; a fallback error settles in
      DISCONNECTED until the next start()
    - pause() drops incoming messages without closing the socket
    - stop() closes everything and re-arms the fallback

    Every connection attempt gets a sequence number; callbacks from an
    attempt that has been superseded (by stop(), start() or the fallback)
    are ignored. State changes happen under one lock, status broadcasts
    after it is released.
    """

    def __init__(
        self,
        config: RelayConfig,
        stats: StatsAggregator,
        sink: Optional[Any] = None,
        connector: Optional[UpstreamConnector] = None,
        logger: Optional[StructuredLogger] = None,
        sleeper: Callable[[float], Awaitable[None]] = asyncio.sleep,
        wall_clock: Callable[[], float] = time.time,
    ):
        """
        Initialize manager.

        Args:
            config: Relay configuration (endpoints, fallback delay)
            stats: Aggregator observing every relayed message
            sink: Object with `async broadcast(kind, value)`, normally the FanoutGateway
            connector: Opens upstream sockets (defaults to UpstreamConnector from config)
            logger: Optional structured logger for telemetry
            sleeper: Async sleep used for the fallback delay
            wall_clock: Source of connection timestamps (epoch seconds)
        """
        self.endpoints: Dict[EndpointRole, EndpointConfig] = {
            EndpointRole.PRIMARY: config.primary,
            EndpointRole.FALLBACK: config.fallback,
        }
        self.fallback_delay = config.fallback_delay
        self.stats = stats
        self.sink = sink
        self.connector = connector or UpstreamConnector.from_config(config)
        self.logger = logger
        self._sleep = sleeper
        self._wall_clock = wall_clock

        self.state = ConnectionState()
        self._lock = asyncio.Lock()
        self._socket: Optional[Any] = None
        self._reader: Optional[asyncio.Task] = None
        self._fallback_timer: Optional[asyncio.Task] = None
        self._attempt = 0

    # --- Status ---

    def status(self, message: Optional[str] = None) -> StatusUpdate:
        """Build a status update from the current state."""
        connected = self.state.connected
        if message is None:
            message = "Connected" if connected else "Disconnected"
        return StatusUpdate(connected=connected, paused=self.state.paused, message=message)

    @property
    def fallback_pending(self) -> bool:
        return self._fallback_timer is not None and not self._fallback_timer.done()

    def cancel_fallback(self) -> bool:
        """
        Cancel a scheduled fallback attempt.

        Returns:
            True if a pending attempt was cancelled
        """
        timer, self._fallback_timer = self._fallback_timer, None
        if timer is None or timer.done() or timer is asyncio.current_task():
            return False
        timer.cancel()
        return True

    def _has_live_socket(self) -> bool:
        return self.state.mode in (ConnectionMode.CONNECTING, ConnectionMode.CONNECTED)

    # --- Control commands ---

    async def start(self) -> None:
        """Set RUNNING and connect to the primary endpoint if no socket is live."""
        async with self._lock:
            await self._start_locked()
            status = self.status("Started")
        self._log_command("start")
        await self._emit_status(status)

    async def pause(self) -> None:
        """Set PAUSED; the socket stays open and incoming messages are dropped."""
        async with self._lock:
            self.state.control_state = ControlState.PAUSED
            status = self.status("Paused")
        self._log_command("pause")
        await self._emit_status(status)

    async def resume(self) -> None:
        """Set RUNNING on a live socket, otherwise behave as start()."""
        async with self._lock:
            if self._has_live_socket():
                self.state.control_state = ControlState.RUNNING
                status = self.status("Resumed")
            else:
                await self._start_locked()
                status = self.status("Started")
        self._log_command("resume")
        await self._emit_status(status)

    async def stop(self) -> None:
        """Close any socket and reset to STOPPED/DISCONNECTED/PRIMARY. Idempotent."""
        async with self._lock:
            self.cancel_fallback()
            self._attempt += 1
            await self._close_socket()
            self.state.mode = ConnectionMode.DISCONNECTED
            self.state.control_state = ControlState.STOPPED
            self.state.active_endpoint = EndpointRole.PRIMARY
            status = self.status("Stopped")
        self._log_command("stop")
        await self._emit_status(status)

    async def _start_locked(self) -> None:
        self.state.control_state = ControlState.RUNNING
        if self._has_live_socket():
            return
        # a fresh start re-arms the one-shot fallback
        self.cancel_fallback()
        await self._open(EndpointRole.PRIMARY)

    # --- Connection lifecycle ---

    async def _open(self, role: EndpointRole) -> None:
        """Close the previous socket, then start a connection attempt (lock held)."""
        await self._close_socket()
        self._attempt += 1
        self.state.active_endpoint = role
        self.state.mode = ConnectionMode.CONNECTING
        self._reader = asyncio.create_task(self._run_connection(role, self._attempt))

    async def _close_socket(self) -> None:
        reader, self._reader = self._reader, None
        if reader is not None and reader is not asyncio.current_task() and not reader.done():
            reader.cancel()
            try:
                await reader
            except asyncio.CancelledError:
                pass

        socket, self._socket = self._socket, None
        await self._safe_close(socket)

    async def _safe_close(self, socket: Optional[Any]) -> None:
        if socket is None:
            return
        try:
            await socket.close()
        except Exception as e:
            if self.logger:
                self.logger.log("socket_close_failed", error=str(e))

    async def _run_connection(self, role: EndpointRole, attempt: int) -> None:
        """Reader task: connect, then feed every message through the handlers."""
        endpoint = self.endpoints[role]
        if self.logger:
            self.logger.upstream_connect(endpoint=endpoint.name, url=endpoint.url)

        try:
            socket = await self.connector.connect(endpoint.url)
        except Exception as e:
            await self._on_error(role, attempt, e)
            return

        if not await self._on_open(role, attempt, socket):
            await self._safe_close(socket)
            return

        try:
            async for message in socket:
                try:
                    await self._on_message(role, attempt, message)
                except Exception as e:
                    # a message that cannot be relayed is dropped, the socket stays up
                    if self.logger:
                        self.logger.message_failed(endpoint=endpoint.name, error=str(e) or type(e).__name__)
        except Exception as e:
            await self._on_error(role, attempt, e)
            return

        await self._on_close(role, attempt)

    async def _on_open(self, role: EndpointRole, attempt: int, socket: Any) -> bool:
        endpoint = self.endpoints[role]
        async with self._lock:
            if attempt != self._attempt:
                return False
            self._socket = socket
            self.state.mode = ConnectionMode.CONNECTED
            self.state.started_at = self._wall_clock()
            self.stats.mark_started(self.state.started_at)
            status = self.status(f"Connected to {endpoint.label}")

        if self.logger:
            self.logger.upstream_open(endpoint=endpoint.name)
        await self._emit_status(status)
        return True

    async def _on_message(self, role: EndpointRole, attempt: int, message: Any) -> None:
        if attempt != self._attempt:
            return
        if self.state.control_state != ControlState.RUNNING:
            # paused: read and discard, nothing is buffered
            return

        endpoint = self.endpoints[role]
        size = len(message.encode("utf-8")) if isinstance(message, str) else len(message)
        event = decode(
            message,
            endpoint.mode,
            received_at=datetime.now(timezone.utc).isoformat(),
            logger=self.logger,
        )
        self.stats.observe(1, size)
        if self.sink is not None:
            await self.sink.broadcast(MessageKind.EVENT, event)

    async def _on_error(self, role: EndpointRole, attempt: int, error: BaseException) -> None:
        endpoint = self.endpoints[role]
        async with self._lock:
            if attempt != self._attempt:
                return
            self._detach_reader()
            socket, self._socket = self._socket, None
            self.state.mode = ConnectionMode.DISCONNECTED
            statuses = [self.status("Connection error")]
            if role == EndpointRole.PRIMARY:
                self._schedule_fallback(attempt)
            else:
                statuses.append(self.status("All endpoints failed"))

        if self.logger:
            self.logger.upstream_error(endpoint=endpoint.name, error=str(error) or type(error).__name__)
            if role == EndpointRole.PRIMARY:
                self.logger.fallback_scheduled(endpoint=self.endpoints[EndpointRole.FALLBACK].name,
                                               delay=self.fallback_delay)
            else:
                self.logger.fallback_exhausted()

        await self._safe_close(socket)
        for status in statuses:
            await self._emit_status(status)

    async def _on_close(self, role: EndpointRole, attempt: int) -> None:
        endpoint = self.endpoints[role]
        async with self._lock:
            if attempt != self._attempt:
                return
            self._detach_reader()
            self._socket = None
            self.state.mode = ConnectionMode.DISCONNECTED
            status = self.status(f"Disconnected from {endpoint.label}")

        if self.logger:
            self.logger.upstream_close(endpoint=endpoint.name)
        await self._emit_status(status)

    def _detach_reader(self) -> None:
        # the reader is finishing on its own; a later _open must not cancel it mid-broadcast
        if self._reader is asyncio.current_task():
            self._reader = None

    # --- Fallback timer ---

    def _schedule_fallback(self, attempt: int) -> None:
        self.cancel_fallback()
        self._fallback_timer = asyncio.create_task(self._fallback_after_delay(attempt))

    async def _fallback_after_delay(self, attempt: int) -> None:
        await self._sleep(self.fallback_delay)
        async with self._lock:
            if attempt != self._attempt or self._fallback_timer is not asyncio.current_task():
                return
            self._fallback_timer = None
            await self._open(EndpointRole.FALLBACK)

    # --- Helpers ---

    async def _emit_status(self, status: StatusUpdate) -> None:
        if self.sink is not None:
            await self.sink.broadcast(MessageKind.STATUS, status)

    def _log_command(self, command: str) -> None:
        if self.logger:
            self.logger.control_command(
                command=command,
                mode=self.state.mode.value,
                control=self.state.control_state.value,
            )
