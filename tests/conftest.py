from collections import deque

import pytest
from gpiozero.pins.mock import MockFactory, MockPWMPin

from cathome_sync.actuators import ActuatorDriver
from cathome_sync.config import ResilienceConfig
from cathome_sync.core.errors import BackendNotReady, NetworkDown, SubscriptionFailure
from cathome_sync.core.models import ActuatorTarget, PollResult


class FakeStream:
    """Scripted stream: each poll pops the next queued result."""

    def __init__(self, path: str) -> None:
        self.path = path
        self.results: deque[PollResult] = deque()
        self.closed = False

    def push(self, *results: PollResult) -> None:
        self.results.extend(results)

    def poll(self) -> PollResult:
        if self.results:
            return self.results.popleft()
        return PollResult.no_data()

    async def close(self) -> None:
        self.closed = True


class FakeStore:
    def __init__(self, *, ready: bool = True, connect_succeeds: bool = True) -> None:
        self.ready = ready
        self.connect_succeeds = connect_succeeds
        self.connect_calls = 0
        self.fail_paths: set[str] = set()
        self.open_calls: list[str] = []
        self.streams: dict[str, FakeStream] = {}
        self.closed = False

    async def connect(self) -> None:
        self.connect_calls += 1
        if not self.connect_succeeds:
            raise BackendNotReady("simulated outage")
        self.ready = True

    def mark_unavailable(self, reason: str) -> None:
        self.ready = False

    async def open_stream(self, path: str) -> FakeStream:
        self.open_calls.append(path)
        if path in self.fail_paths:
            raise SubscriptionFailure(path, "simulated failure")
        stream = FakeStream(path)
        self.streams[path] = stream
        return stream

    async def aclose(self) -> None:
        self.closed = True


class FakeNetwork:
    def __init__(self, *, up: bool = True, reassociate_succeeds: bool = False) -> None:
        self.up = up
        self.reassociate_succeeds = reassociate_succeeds
        self.reassociate_calls = 0

    def is_up(self) -> bool:
        return self.up

    async def reassociate(self) -> None:
        self.reassociate_calls += 1
        if not self.reassociate_succeeds:
            raise NetworkDown("simulated link failure")
        self.up = True


class RecordingDriver(ActuatorDriver):
    """Output without hardware that remembers every physical write."""

    def __init__(self, name: str, target: ActuatorTarget, **kwargs) -> None:
        super().__init__(name, target, **kwargs)
        self.writes: list[int] = []

    def _write(self, position: int) -> None:
        self.writes.append(position)


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def network() -> FakeNetwork:
    return FakeNetwork()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def resilience() -> ResilienceConfig:
    """Minimal once-per-tick recovery without backoff."""
    return ResilienceConfig(reconnect_initial_seconds=0.0, reconnect_jitter_ratio=0.0)


@pytest.fixture
def mock_pins() -> MockFactory:
    factory = MockFactory(pin_class=MockPWMPin)
    yield factory
    # Mock pins and reservations are shared by every MockFactory instance.
    factory.reset()
    factory.close()


def make_driver(name: str, target: ActuatorTarget, *, skip: bool = False) -> RecordingDriver:
    return RecordingDriver(name, target, skip_redundant_writes=skip)


@pytest.fixture
def recording_driver():
    return make_driver

