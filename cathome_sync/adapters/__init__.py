"""Adapter modules for external integrations."""

from .network import SystemNetworkLink
from .rtdb import RealtimeDatabaseClient, RealtimeStream

__all__ = [
    "RealtimeDatabaseClient",
    "RealtimeStream",
    "SystemNetworkLink",
]
