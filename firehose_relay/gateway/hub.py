"""Fan-out gateway between the upstream connection manager and downstream subscribers."""

import asyncio
from typing import Any, Dict, Optional, Protocol, Set, Union

from firehose_relay.gateway.messages import MessageFormatter
from firehose_relay.models.data_models import MessageKind, RateStats, StatusUpdate
from firehose_relay.stats.aggregator import StatsAggregator


COMMANDS = ("start", "stop", "pause", "resume")


class Subscriber(Protocol):
    """Anything that can receive a `{"type", "data"}` frame."""

    async def send(self, frame: Dict[str, Any]) -> None:
        ...


class Controller(Protocol):
    """Control surface of the upstream connection manager."""

    async def start(self) -> None: ...

    async def stop(self) -> None: ...

    async def pause(self) -> None: ...

    async def resume(self) -> None: ...

    def status(self, message: Optional[str] = None) -> StatusUpdate: ...


class FanoutGateway:
    """
    Broadcasts status, stats and event messages to every current subscriber.

    Responsibilities:
    - Best-effort delivery: a subscriber that fails or does not accept a frame
      within `send_timeout` is dropped and never blocks the others
    - Catch-up for new subscribers: current status and latest stats, no event history
    - Relaying start/stop/pause/resume commands from any subscriber to the controller
    """

    def __init__(
        self,
        stats: StatsAggregator,
        formatter: Optional[MessageFormatter] = None,
        logger=None,
        send_timeout: float = 5.0,
    ):
        self.stats = stats
        self.formatter = formatter or MessageFormatter()
        self.logger = logger
        self.send_timeout = send_timeout
        self._subscribers: Set[Subscriber] = set()
        self._controller: Optional[Controller] = None

    def attach_controller(self, controller: Controller) -> None:
        self._controller = controller

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def current_status(self) -> StatusUpdate:
        if self._controller is None:
            return StatusUpdate(connected=False, paused=False, message="Disconnected")
        return self._controller.status()

    def latest_stats(self) -> RateStats:
        """Last ticked rates, with the start time of the current connection."""
        return self.stats.snapshot()

    async def add_subscriber(self, subscriber: Subscriber) -> None:
        """
        Register a subscriber and send it the catch-up messages.

        Args:
            subscriber: Downstream handle
        """
        self._subscribers.add(subscriber)
        if self.logger:
            self.logger.subscriber_added(subscribers=len(self._subscribers))

        catch_up = (
            (MessageKind.STATUS, self.current_status()),
            (MessageKind.STATS, self.latest_stats()),
        )
        for kind, value in catch_up:
            if not await self._deliver(subscriber, kind, self.formatter.frame(kind, value)):
                return

    def remove_subscriber(self, subscriber: Subscriber) -> None:
        """Unregister a subscriber; unknown subscribers are ignored."""
        if subscriber in self._subscribers:
            self._subscribers.discard(subscriber)
            if self.logger:
                self.logger.subscriber_removed(subscribers=len(self._subscribers))

    async def broadcast(self, kind: Union[MessageKind, str], value: Any) -> None:
        """
        Send one message to all current subscribers.

        Never raises on a send failure; failed subscribers are dropped.

        Args:
            kind: Message kind
            value: StatusUpdate, RateStats, NormalizedEvent or a preformatted dict
        """
        kind = MessageKind(kind)
        if not self._subscribers:
            return

        frame = self.formatter.frame(kind, value)
        subscribers = list(self._subscribers)
        await asyncio.gather(
            *(self._deliver(subscriber, kind, frame) for subscriber in subscribers)
        )

    async def _deliver(self, subscriber: Subscriber, kind: MessageKind, frame: Dict[str, Any]) -> bool:
        try:
            await asyncio.wait_for(subscriber.send(frame), self.send_timeout)
            return True
        except Exception as e:
            if self.logger:
                self.logger.broadcast_failed(kind=kind.value, error=str(e) or type(e).__name__)
            self.remove_subscriber(subscriber)
            return False

    async def handle_command(self, command: str) -> bool:
        """
        Relay a control command to the upstream connection manager.

        Args:
            command: One of start, stop, pause, resume (case-insensitive)

        Returns:
            True if the command was dispatched, False if it was unknown or no
            controller is attached
        """
        name = (command or "").strip().lower()
        if name not in COMMANDS or self._controller is None:
            if self.logger:
                self.logger.unknown_command(command=command)
            return False

        await getattr(self._controller, name)()
        return True
