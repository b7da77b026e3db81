"""Core primitives for cathome-sync."""

from .errors import (
    BackendNotReady,
    ChannelTimeout,
    ChannelTransportError,
    NetworkDown,
    SubscriptionFailure,
    SyncError,
)
from .models import (
    ActuatorTarget,
    BinaryCommand,
    Bounds,
    ChannelKind,
    ChannelPolicy,
    ChannelRuntimeState,
    ConnectivityState,
    PollResult,
    PollStatus,
    RemoteChannel,
    SupervisorStatus,
)
from .protocols import NetworkLink, RemoteStore, ValueStream

__all__ = [
    "ActuatorTarget",
    "BackendNotReady",
    "BinaryCommand",
    "Bounds",
    "ChannelKind",
    "ChannelPolicy",
    "ChannelRuntimeState",
    "ChannelTimeout",
    "ChannelTransportError",
    "ConnectivityState",
    "NetworkDown",
    "NetworkLink",
    "PollResult",
    "PollStatus",
    "RemoteChannel",
    "RemoteStore",
    "SubscriptionFailure",
    "SupervisorStatus",
    "SyncError",
    "ValueStream",
]
