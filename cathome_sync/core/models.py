"""Domain models for channels, actuators and connectivity."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class ChannelKind(str, Enum):
    BINARY = "binary"
    CONTINUOUS = "continuous"


class BinaryCommand(int, Enum):
    OFF = 0
    ON = 1


class PollStatus(str, Enum):
    """Outcome of polling one streaming subscription."""

    NO_DATA = "no_data"
    NEW_VALUE = "new_value"
    TIMED_OUT = "timed_out"
    ERRORED = "errored"


class SupervisorStatus(str, Enum):
    READY = "ready"
    NOT_READY = "not_ready"


@dataclass(slots=True, frozen=True)
class Bounds:
    minimum: int
    maximum: int

    def __post_init__(self) -> None:
        if self.minimum > self.maximum:
            raise ValueError(
                f"Invalid bounds: minimum {self.minimum} exceeds maximum {self.maximum}"
            )

    def clamp(self, value: int) -> int:
        return max(self.minimum, min(self.maximum, value))

    def __contains__(self, value: object) -> bool:
        return isinstance(value, int) and self.minimum <= value <= self.maximum


BINARY_BOUNDS = Bounds(0, 1)


@dataclass(slots=True, frozen=True)
class ChannelPolicy:
    resubscribe_on_timeout: bool = True
    log_on_error: bool = True


@dataclass(slots=True, frozen=True)
class RemoteChannel:
    """One streamed path in the remote store and how to treat its values."""

    name: str
    path: str
    kind: ChannelKind
    bounds: Bounds = BINARY_BOUNDS
    policy: ChannelPolicy = field(default_factory=ChannelPolicy)

    @classmethod
    def binary(
        cls, name: str, path: str, *, policy: Optional[ChannelPolicy] = None
    ) -> "RemoteChannel":
        return cls(
            name=name,
            path=path,
            kind=ChannelKind.BINARY,
            bounds=BINARY_BOUNDS,
            policy=policy or ChannelPolicy(),
        )

    @classmethod
    def continuous(
        cls,
        name: str,
        path: str,
        bounds: Bounds,
        *,
        policy: Optional[ChannelPolicy] = None,
    ) -> "RemoteChannel":
        return cls(
            name=name,
            path=path,
            kind=ChannelKind.CONTINUOUS,
            bounds=bounds,
            policy=policy or ChannelPolicy(log_on_error=False),
        )


@dataclass(slots=True)
class ChannelRuntimeState:
    last_raw_value: Optional[int] = None
    timed_out: bool = False
    subscribed: bool = False


@dataclass(slots=True)
class ActuatorTarget:
    kind: ChannelKind
    bounds: Bounds
    current_position: int

    def __post_init__(self) -> None:
        self.current_position = self.bounds.clamp(self.current_position)


@dataclass(slots=True)
class ConnectivityState:
    network_up: bool = False
    backend_ready: bool = False

    @property
    def ready(self) -> bool:
        return self.network_up and self.backend_ready


@dataclass(slots=True, frozen=True)
class PollResult:
    status: PollStatus
    value: Optional[int] = None
    reason: Optional[str] = None

    @classmethod
    def no_data(cls) -> "PollResult":
        return cls(PollStatus.NO_DATA)

    @classmethod
    def new_value(cls, value: int) -> "PollResult":
        return cls(PollStatus.NEW_VALUE, value=value)

    @classmethod
    def timed_out(cls) -> "PollResult":
        return cls(PollStatus.TIMED_OUT)

    @classmethod
    def errored(cls, reason: str) -> "PollResult":
        return cls(PollStatus.ERRORED, reason=reason)
