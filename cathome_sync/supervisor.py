"""Connectivity supervision and stream recovery.

The supervisor is the only component that changes connectivity state. Each
scheduler tick asks it whether the system is ready; while it is not, it makes
at most one recovery attempt per tick, spaced by a bounded exponential
backoff so an unreachable backend is not hammered at the tick rate.
"""

from __future__ import annotations

import logging
import random
import time
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable, Optional, Sequence

from .core.errors import BackendNotReady, NetworkDown
from .core.models import ConnectivityState, SupervisorStatus
from .core.protocols import NetworkLink, RemoteStore

if TYPE_CHECKING:
    from .config import ResilienceConfig
    from .health import HealthReporter
    from .subscription import ChannelSubscription

LOGGER = logging.getLogger(__name__)


class RecoveryStage(str, Enum):
    """Which recovery step the backoff currently applies to."""

    NETWORK = "network"
    BACKEND = "backend"


class ConnectionSupervisor:
    """Gates scheduler ticks on connectivity and recovers lapsed streams.

    Per tick:

    1. Network link down: attempt reassociation, report ``NOT_READY``.
    2. Backend not ready: one reconnect attempt, report ``NOT_READY``. A
       successful reconnect also performs the initial subscription of
       channels that never got one.
    3. Backend ready: resubscribe channels flagged as timed out, leave
       healthy streams alone, report ``READY``.
    """

    def __init__(
        self,
        *,
        network: NetworkLink,
        store: RemoteStore,
        subscriptions: Sequence[ChannelSubscription],
        resilience: ResilienceConfig,
        health: Optional[HealthReporter] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._network = network
        self._store = store
        self._subscriptions = tuple(subscriptions)
        self._resilience = resilience
        self._health = health
        self._clock = clock

        self._state = ConnectivityState()
        self._backoff_stage: Optional[RecoveryStage] = None
        self._backoff_delay = 0.0
        self._next_attempt_at = 0.0

    @property
    def state(self) -> ConnectivityState:
        return self._state

    async def tick(self) -> SupervisorStatus:
        await self._set_network_up(self._network.is_up())
        if not self._state.network_up:
            await self._set_backend_ready(False)
            await self._attempt(RecoveryStage.NETWORK, self._network.reassociate)
            return SupervisorStatus.NOT_READY

        await self._set_backend_ready(self._store.ready)
        if not self._state.backend_ready:
            if await self._attempt(RecoveryStage.BACKEND, self._store.connect):
                await self._set_backend_ready(self._store.ready)
                await self._subscribe_never_subscribed()
            return SupervisorStatus.NOT_READY

        self._reset_backoff()

        for subscription in self._subscriptions:
            if subscription.needs_resubscribe:
                # A failed resubscription degrades this channel only.
                await subscription.resubscribe()

        return SupervisorStatus.READY

    # ------------------------------------------------------------------
    # Recovery attempts
    # ------------------------------------------------------------------
    async def _attempt(
        self, stage: RecoveryStage, operation: Callable[[], Awaitable[None]]
    ) -> bool:
        if stage != self._backoff_stage:
            self._backoff_stage = stage
            self._backoff_delay = 0.0
            self._next_attempt_at = 0.0

        now = self._clock()
        if now < self._next_attempt_at:
            return False

        try:
            await operation()
        except (NetworkDown, BackendNotReady) as exc:
            delay = self._schedule_retry(now)
            LOGGER.warning(
                "%s recovery failed: %s, next attempt in %.1fs",
                stage.value.capitalize(),
                exc,
                delay,
            )
            return False

        self._reset_backoff()
        return True

    def _schedule_retry(self, now: float) -> float:
        initial = self._resilience.reconnect_initial_seconds
        if initial <= 0.0:
            self._next_attempt_at = now
            return 0.0

        max_delay = max(initial, self._resilience.reconnect_max_seconds)
        delay = self._backoff_delay or initial

        sleep_for = delay
        jitter_ratio = max(0.0, min(1.0, self._resilience.reconnect_jitter_ratio))
        if jitter_ratio > 0.0:
            jitter = delay * jitter_ratio
            sleep_for = random.uniform(max(0.0, delay - jitter), delay + jitter)

        self._next_attempt_at = now + sleep_for
        self._backoff_delay = min(delay * 2, max_delay)
        return sleep_for

    def _reset_backoff(self) -> None:
        self._backoff_stage = None
        self._backoff_delay = 0.0
        self._next_attempt_at = 0.0

    async def _subscribe_never_subscribed(self) -> None:
        for subscription in self._subscriptions:
            if subscription.never_subscribed:
                await subscription.subscribe()

    # ------------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------------
    async def _set_network_up(self, up: bool) -> None:
        if up == self._state.network_up:
            return
        self._state.network_up = up
        if up:
            LOGGER.info("Network link up")
        else:
            LOGGER.warning("Network link down, attempting to reassociate")
        await self._report("network", up, "up" if up else "down")

    async def _set_backend_ready(self, ready: bool) -> None:
        if ready == self._state.backend_ready:
            return
        self._state.backend_ready = ready
        if ready:
            LOGGER.info("Realtime Database ready")
        elif self._state.network_up:
            LOGGER.warning("Realtime Database not ready, attempting to reconnect")
        await self._report("backend", ready, "ready" if ready else "not ready")

    async def _report(self, name: str, healthy: bool, detail: str) -> None:
        if self._health is not None:
            await self._health.update(name, healthy, detail)
