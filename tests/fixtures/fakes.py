"""In-memory stand-ins for upstream sockets, subscribers and timers."""

import asyncio
from typing import Any, Dict, List, Optional, Union

from firehose_relay.models.data_models import MessageKind, NormalizedEvent, StatusUpdate


_CLOSE = object()


class FakeSocket:
    """Upstream socket fed by the test: messages, an error, or a normal close."""

    def __init__(self, messages: Optional[List[Union[str, bytes]]] = None):
        self._queue: asyncio.Queue = asyncio.Queue()
        self.closed = False
        for message in messages or []:
            self._queue.put_nowait(message)

    def feed(self, message: Union[str, bytes]) -> None:
        self._queue.put_nowait(message)

    def fail(self, error: BaseException) -> None:
        self._queue.put_nowait(error)

    def finish(self) -> None:
        self._queue.put_nowait(_CLOSE)

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self._queue.get()
        if item is _CLOSE:
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self) -> None:
        self.closed = True
        self._queue.put_nowait(_CLOSE)


class FakeConnector:
    """Connector returning scripted outcomes per URL (sockets or exceptions)."""

    def __init__(self):
        self.urls: List[str] = []
        self.sockets: List[FakeSocket] = []
        self._plan: Dict[str, List[Any]] = {}
        self._gates: Dict[str, asyncio.Event] = {}

    def script(self, url: str, *outcomes: Any) -> None:
        self._plan.setdefault(url, []).extend(outcomes)

    def hold(self, url: str) -> asyncio.Event:
        """Make connects to `url` wait until the returned event is set."""
        gate = asyncio.Event()
        self._gates[url] = gate
        return gate

    async def connect(self, url: str) -> FakeSocket:
        self.urls.append(url)
        gate = self._gates.get(url)
        if gate is not None:
            await gate.wait()
        outcomes = self._plan.get(url)
        outcome = outcomes.pop(0) if outcomes else FakeSocket()
        if isinstance(outcome, BaseException):
            raise outcome
        self.sockets.append(outcome)
        return outcome


class RecordingSink:
    """Broadcast target that records everything the manager emits."""

    def __init__(self):
        self.messages: List[tuple] = []

    async def broadcast(self, kind, value) -> None:
        self.messages.append((MessageKind(kind), value))

    def statuses(self) -> List[StatusUpdate]:
        return [value for kind, value in self.messages if kind == MessageKind.STATUS]

    def status_messages(self) -> List[str]:
        return [status.message for status in self.statuses()]

    def events(self) -> List[NormalizedEvent]:
        return [value for kind, value in self.messages if kind == MessageKind.EVENT]


class RecordingSubscriber:
    """Downstream subscriber keeping every frame it receives."""

    def __init__(self):
        self.frames: List[dict] = []

    async def send(self, frame: dict) -> None:
        self.frames.append(frame)

    def kinds(self) -> List[str]:
        return [frame["type"] for frame in self.frames]


class BrokenSubscriber:
    """Subscriber whose connection has gone away."""

    def __init__(self):
        self.attempts = 0

    async def send(self, frame: dict) -> None:
        self.attempts += 1
        raise ConnectionResetError("subscriber went away")


class ManualSleeper:
    """Async sleep replacement that records delays and waits for release()."""

    def __init__(self):
        self.delays: List[float] = []
        self._released = asyncio.Event()

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await self._released.wait()

    def release(self) -> None:
        self._released.set()


async def settle(rounds: int = 20) -> None:
    """Let pending tasks run until they block."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class StalledSubscriber:
    """Subscriber that stopped reading: sends never complete."""

    def __init__(self):
        self.attempts = 0
        self._never = asyncio.Event()

    async def send(self, frame: dict) -> None:
        self.attempts += 1
        await self._never.wait()


class FakeClock:
    """Fake clock for deterministic testing."""

    def __init__(self, start: float = 0.0):
        self.time = start

    def now(self) -> float:
        return self.time

    def advance(self, seconds: float) -> None:
        self.time += seconds
