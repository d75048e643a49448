"""Background task driving the stats tick and broadcasting the result."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from firehose_relay.models.data_models import MessageKind
from firehose_relay.stats.aggregator import StatsAggregator


log = logging.getLogger(__name__)


class StatsTicker:
    """
    Calls `StatsAggregator.tick()` on a fixed cadence for the process lifetime.

    Each snapshot is handed to `broadcast(MessageKind.STATS, stats)`.
    """

    def __init__(
        self,
        aggregator: StatsAggregator,
        broadcast: Callable[..., Awaitable[None]],
        interval: float = 1.0,
        sleeper: Callable[[float], Awaitable[None]] = asyncio.sleep,
        logger=None,
    ):
        self.aggregator = aggregator
        self.broadcast = broadcast
        self.interval = interval
        self._sleep = sleeper
        self.logger = logger
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the tick loop (no-op if already running)."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop the tick loop and wait for it to exit."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def tick_once(self) -> None:
        stats = self.aggregator.tick()
        if self.logger:
            self.logger.stats_tick(
                events_per_second=stats.events_per_second,
                bytes_per_second=stats.bytes_per_second,
            )
        await self.broadcast(MessageKind.STATS, stats)

    async def _run(self) -> None:
        while True:
            await self._sleep(self.interval)
            try:
                await self.tick_once()
            except Exception as e:
                log.error(f"Stats tick failed: {e}", exc_info=True)
