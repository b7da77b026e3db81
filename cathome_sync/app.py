"""Main application entry-point for cathome-sync."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
import time
from enum import Enum
from typing import Callable, Dict, List, Optional

from .actuators import (
    ActuatorDriver,
    DigitalActuator,
    DirectionLatch,
    ServoActuator,
    build_pin_factory,
)
from .adapters import RealtimeDatabaseClient, SystemNetworkLink
from .config import (
    LEGACY_DIRECTION_CHANNELS,
    STEPPING_AXIS_CHANNEL,
    ChannelConfig,
    SyncConfig,
    load_config,
)
from .core.errors import BackendNotReady
from .core.models import ChannelKind
from .core.protocols import NetworkLink, RemoteStore
from .health import HealthReporter, HealthServer
from .logging import configure_logging
from .scheduler import ChannelBinding, Scheduler, SteppingAxis
from .subscription import ChannelSubscription
from .supervisor import ConnectionSupervisor

LOGGER = logging.getLogger(__name__)


class AgentState(str, Enum):
    COLD_START = "cold_start"
    AWAITING_NETWORK = "awaiting_network"
    AWAITING_BACKEND = "awaiting_backend"
    ACTIVE = "active"
    DEGRADED = "degraded"
    STOPPING = "stopping"


class CatHomeSyncApp:
    """Coordinates startup, the control loop and shutdown.

    Startup mirrors the device's one-time bring-up: outputs are put in their
    safe initial positions, the network link is awaited, the backend is
    bootstrapped with a bounded number of attempts, and each channel gets one
    initial subscription. The scheduler starts regardless of how far that
    got; the supervisor recovers the rest.

    The remote store and network link can be injected for testing.
    """

    def __init__(
        self,
        config: Optional[SyncConfig] = None,
        *,
        store: Optional[RemoteStore] = None,
        network: Optional[NetworkLink] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config or load_config()
        self._store: RemoteStore = store or RealtimeDatabaseClient(
            self._config.database, clock=clock
        )
        self._network: NetworkLink = network or SystemNetworkLink(self._config.network)
        self._clock = clock
        self._health = HealthReporter()
        self._health_server: Optional[HealthServer] = None
        self._state = AgentState.COLD_START
        self._stop_event: Optional[asyncio.Event] = None

        self._drivers: List[ActuatorDriver] = []
        self._subscriptions: List[ChannelSubscription] = []
        self._supervisor: Optional[ConnectionSupervisor] = None
        self._scheduler: Optional[Scheduler] = None

    @property
    def state(self) -> AgentState:
        return self._state

    @property
    def health(self) -> HealthReporter:
        return self._health

    @property
    def subscriptions(self) -> List[ChannelSubscription]:
        return list(self._subscriptions)

    @property
    def drivers(self) -> Dict[str, ActuatorDriver]:
        return {driver.name: driver for driver in self._drivers}

    @property
    def scheduler(self) -> Scheduler:
        if self._scheduler is None:
            self._scheduler = self.build()
        return self._scheduler

    # ------------------------------------------------------------------
    # Assembly
    # ------------------------------------------------------------------
    def build(self) -> Scheduler:
        """Create outputs, subscriptions, supervisor and scheduler from config."""

        if self._scheduler is not None:
            return self._scheduler

        actuators = self._config.actuators
        pin_factory = build_pin_factory(actuators.pin_factory)
        bindings: List[ChannelBinding] = []
        latches: Dict[str, DirectionLatch] = {}

        for channel_config in self._config.active_channels():
            channel = channel_config.to_remote_channel()
            driver: ActuatorDriver
            if channel.name in LEGACY_DIRECTION_CHANNELS:
                driver = latches[channel.name] = DirectionLatch(channel.name)
            elif channel.kind is ChannelKind.BINARY:
                driver = DigitalActuator(
                    channel.name,
                    _require_pin(channel_config),
                    pin_factory=pin_factory,
                    skip_redundant_writes=actuators.skip_redundant_writes,
                )
            else:
                driver = ServoActuator(
                    channel.name,
                    _require_pin(channel_config),
                    channel.bounds,
                    initial_angle=actuators.initial_angle,
                    min_pulse_width=actuators.servo_min_pulse_width,
                    max_pulse_width=actuators.servo_max_pulse_width,
                    pin_factory=pin_factory,
                    skip_redundant_writes=actuators.skip_redundant_writes,
                )

            subscription = ChannelSubscription(channel, self._store)
            self._drivers.append(driver)
            self._subscriptions.append(subscription)
            bindings.append(ChannelBinding(subscription=subscription, driver=driver))

        stepping_axes: List[SteppingAxis] = []
        if self._config.stepping:
            left = latches.get(LEGACY_DIRECTION_CHANNELS[0])
            right = latches.get(LEGACY_DIRECTION_CHANNELS[1])
            if left is None or right is None:
                LOGGER.warning(
                    "Stepping camera mode needs both direction channels enabled; "
                    "camera x axis will not move"
                )
            else:
                axis_config = self._config.channel(STEPPING_AXIS_CHANNEL)
                servo = ServoActuator(
                    axis_config.name,
                    _require_pin(axis_config),
                    axis_config.to_remote_channel().bounds,
                    initial_angle=actuators.initial_angle,
                    min_pulse_width=actuators.servo_min_pulse_width,
                    max_pulse_width=actuators.servo_max_pulse_width,
                    pin_factory=pin_factory,
                )
                self._drivers.append(servo)
                stepping_axes.append(
                    SteppingAxis(
                        left=left, right=right, driver=servo, step=actuators.step_size
                    )
                )

        self._supervisor = ConnectionSupervisor(
            network=self._network,
            store=self._store,
            subscriptions=self._subscriptions,
            resilience=self._config.resilience,
            health=self._health,
            clock=self._clock,
        )
        self._scheduler = Scheduler(
            self._supervisor,
            bindings,
            tick_interval=self._config.scheduler.tick_interval_seconds,
            stepping_axes=stepping_axes,
            health=self._health,
        )
        return self._scheduler

    # ------------------------------------------------------------------
    # Startup handshake
    # ------------------------------------------------------------------
    async def wait_for_network(self) -> bool:
        """Block until the network link is associated or a stop is requested."""

        interval = self._config.network.association_poll_seconds
        if not self._network.is_up():
            LOGGER.info("Waiting for network link")
        while not self._network.is_up():
            if await self._wait_for_stop(interval):
                return False
        LOGGER.info("Network link up")
        return True

    async def bootstrap_backend(self) -> bool:
        attempts = self._config.resilience.bootstrap_attempts
        delay = self._config.resilience.bootstrap_delay_seconds

        LOGGER.info("Waiting for Realtime Database connection")
        for attempt in range(1, attempts + 1):
            try:
                await self._store.connect()
            except BackendNotReady as exc:
                LOGGER.debug("Bootstrap attempt %d/%d failed: %s", attempt, attempts, exc)
                if attempt < attempts and await self._wait_for_stop(delay):
                    return False
                continue
            LOGGER.info("Realtime Database connection successful")
            return True

        LOGGER.warning("Realtime Database connection failed after %d attempts", attempts)
        return False

    async def subscribe_all(self) -> int:
        subscribed = 0
        for subscription in self._subscriptions:
            if await subscription.subscribe():
                subscribed += 1
        return subscribed

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def run(self) -> None:
        self._stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError, RuntimeError):
                loop.add_signal_handler(signum, self.request_stop)

        LOGGER.info("cathome-sync starting with config: %s", self._config.path)
        await self._transition_state(AgentState.COLD_START, detail="initialising")
        scheduler = self.build()

        try:
            await self._start_services()
            if self._stop_event.is_set():
                return
            # From here on the network/backend/channel components carry the live health.
            await self._transition_state(AgentState.ACTIVE, detail="scheduler running")
            await scheduler.run(self._stop_event)
        except asyncio.CancelledError:
            LOGGER.info("cathome-sync received shutdown signal")
            raise
        finally:
            await self._stop_services()
            for signum in (signal.SIGINT, signal.SIGTERM):
                with contextlib.suppress(NotImplementedError, RuntimeError):
                    loop.remove_signal_handler(signum)

    def request_stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()

    @classmethod
    def start(cls, config: Optional[SyncConfig] = None) -> None:
        instance = cls(config=config)
        configure_logging(
            instance._config.logging.level,
            log_path=instance._config.logging.path,
            log_network=instance._config.logging.log_network,
        )
        try:
            asyncio.run(instance.run())
        except KeyboardInterrupt:
            LOGGER.info("cathome-sync received shutdown signal")

    def channel_snapshot(self) -> List[Dict[str, object]]:
        drivers = self.drivers
        snapshot: List[Dict[str, object]] = []
        for subscription in self._subscriptions:
            driver = drivers.get(subscription.name)
            snapshot.append(
                {
                    "name": subscription.name,
                    "path": subscription.channel.path,
                    "kind": subscription.channel.kind.value,
                    "subscribed": subscription.state.subscribed,
                    "timedOut": subscription.state.timed_out,
                    "lastRawValue": subscription.state.last_raw_value,
                    "position": driver.current_position if driver else None,
                    "lastError": subscription.last_error,
                }
            )
        return snapshot

    async def _start_services(self) -> None:
        resilience = self._config.resilience
        if resilience.health_enabled:
            self._health_server = HealthServer(
                self._health,
                resilience.health_host,
                resilience.health_port,
                channels=self.channel_snapshot,
            )
            try:
                await self._health_server.start()
            except OSError as exc:
                LOGGER.warning("Health endpoint unavailable: %s", exc)
                self._health_server = None

        await self._transition_state(AgentState.AWAITING_NETWORK)
        if not await self.wait_for_network():
            return

        await self._transition_state(AgentState.AWAITING_BACKEND)
        if not await self.bootstrap_backend():
            if self._stop_event is not None and self._stop_event.is_set():
                return
            await self._transition_state(
                AgentState.DEGRADED, detail="Realtime Database unavailable"
            )
            return

        subscribed = await self.subscribe_all()
        total = len(self._subscriptions)
        if subscribed < total:
            await self._transition_state(
                AgentState.DEGRADED,
                detail=f"{total - subscribed} of {total} listeners failed",
            )

    async def _stop_services(self) -> None:
        await self._transition_state(AgentState.STOPPING)

        for subscription in self._subscriptions:
            try:
                await subscription.close()
            except Exception:
                LOGGER.warning("Failed to close %s stream", subscription.name, exc_info=True)

        await self._store.aclose()

        if self._health_server is not None:
            await self._health_server.stop()
            self._health_server = None

        for driver in self._drivers:
            driver.close()

    async def _transition_state(
        self, state: AgentState, *, detail: Optional[str] = None
    ) -> None:
        previous = self._state
        self._state = state
        message_detail = detail or state.value
        if previous != state:
            LOGGER.info(
                "Agent state transition %s -> %s (%s)",
                previous.value,
                state.value,
                message_detail,
            )
        await self._health.set_agent_state(
            state.value,
            healthy=state == AgentState.ACTIVE,
            detail=message_detail,
        )

    async def _wait_for_stop(self, timeout: float) -> bool:
        """Sleep up to ``timeout``; return True if a stop was requested."""

        if self._stop_event is None:
            await asyncio.sleep(timeout)
            return False
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True


def _require_pin(channel: ChannelConfig) -> int:
    if channel.pin is None:
        raise ValueError(f"[channel {channel.name}] requires a pin")
    return channel.pin
