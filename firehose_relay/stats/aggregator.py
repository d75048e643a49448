"""Thread-safe aggregator for upstream rate statistics."""

import threading
import time
from dataclasses import replace
from typing import Optional, Protocol

from firehose_relay.models.data_models import RateStats


class Clock(Protocol):
    """Clock interface for testable time management."""

    def now(self) -> float:
        """Return current time in seconds."""
        ...


class MonotonicClock:
    """Default clock implementation using time.monotonic."""

    def now(self) -> float:
        """Return current monotonic time in seconds."""
        return time.monotonic()


class StatsAggregator:
    """
    Accumulates (event, byte) observations and turns them into rates.

    Interval counters are reset exactly once per tick; cumulative totals only
    grow. Rates divide by the time actually elapsed since the previous tick,
    so a late tick does not inflate them.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or MonotonicClock()
        self._lock = threading.Lock()
        self._interval_events = 0
        self._interval_bytes = 0
        self._last_tick = self.clock.now()
        self._stats = RateStats()

    def observe(self, event_count: int, byte_count: int) -> None:
        """
        Record observations for the current interval.

        Args:
            event_count: Number of events seen
            byte_count: Raw size of those events in bytes
        """
        with self._lock:
            self._interval_events += event_count
            self._interval_bytes += byte_count

    def tick(self) -> RateStats:
        """
        Close the current interval.

        Returns:
            Updated RateStats snapshot, totals including the interval just measured
        """
        with self._lock:
            now = self.clock.now()
            elapsed = now - self._last_tick
            if elapsed > 0:
                events_per_second = round(self._interval_events / elapsed)
                bytes_per_second = round(self._interval_bytes / elapsed)
            else:
                # two ticks at the same instant: report the raw interval counts
                events_per_second = self._interval_events
                bytes_per_second = self._interval_bytes

            self._stats = replace(
                self._stats,
                events_per_second=events_per_second,
                bytes_per_second=bytes_per_second,
                total_events=self._stats.total_events + self._interval_events,
                total_bytes=self._stats.total_bytes + self._interval_bytes,
            )

            self._interval_events = 0
            self._interval_bytes = 0
            self._last_tick = now
            return replace(self._stats)

    def mark_started(self, started_at: Optional[float]) -> None:
        """Record the last successful upstream connection (epoch seconds)."""
        with self._lock:
            start_time = int(started_at * 1000) if started_at is not None else None
            self._stats = replace(self._stats, start_time=start_time)

    def snapshot(self) -> RateStats:
        """Get a copy of the last computed stats."""
        with self._lock:
            return replace(self._stats)

    @property
    def pending(self) -> tuple:
        """Interval counters not yet folded in by a tick (events, bytes)."""
        with self._lock:
            return self._interval_events, self._interval_bytes
