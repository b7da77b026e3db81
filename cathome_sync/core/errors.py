"""Error taxonomy for the synchronization engine.

None of these are fatal. The supervisor and the subscriptions catch them at
the seam where they are raised and turn them into connectivity state or poll
results.
"""

from __future__ import annotations


class SyncError(RuntimeError):
    """Base class for recoverable synchronization failures."""


class NetworkDown(SyncError):
    """Raised when the network link is down or reassociation failed."""


class BackendNotReady(SyncError):
    """Raised when the remote store cannot be reached or rejected the session."""


class ChannelTimeout(SyncError):
    """Raised when a stream's keep-alive lapsed."""


class ChannelTransportError(SyncError):
    """Raised for stream failures other than a keep-alive timeout."""


class SubscriptionFailure(SyncError):
    """Raised when a streaming subscription could not be established."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason
