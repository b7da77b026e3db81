"""Protocol definitions for the collaborators of the sync engine."""

from __future__ import annotations

from typing import Protocol

from .models import PollResult


class ValueStream(Protocol):
    """A live streaming subscription to one remote path."""

    path: str

    def poll(self) -> PollResult:
        """Consume whatever the stream observed since the previous poll."""
        ...

    async def close(self) -> None:
        """Stop the stream and release its connection."""
        ...


class RemoteStore(Protocol):
    """Minimal contract for the remote key-value store."""

    @property
    def ready(self) -> bool:
        """Whether the backend session is currently usable."""
        ...

    async def connect(self) -> None:
        """Make a single attempt to (re)establish the backend session.

        Raises:
            BackendNotReady: If the store could not be reached.
        """
        ...

    def mark_unavailable(self, reason: str) -> None:
        """Flag the backend session as lost."""
        ...

    async def open_stream(self, path: str) -> ValueStream:
        """Subscribe to a path.

        Raises:
            SubscriptionFailure: If the subscription could not be established.
        """
        ...

    async def aclose(self) -> None:
        """Close any underlying resources."""
        ...


class NetworkLink(Protocol):
    """The device's network association."""

    def is_up(self) -> bool:
        ...

    async def reassociate(self) -> None:
        """Attempt to re-join the network.

        Raises:
            NetworkDown: If reassociation failed.
        """
        ...
