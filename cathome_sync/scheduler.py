"""Fixed-period cooperative control loop."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Optional, Sequence

from .actuators import ActuatorDriver, DirectionLatch
from .core.models import PollResult, PollStatus, RemoteChannel, SupervisorStatus
from .mapper import map_command, step_position
from .subscription import ChannelSubscription
from .supervisor import ConnectionSupervisor

if TYPE_CHECKING:
    from .health import HealthReporter

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ChannelBinding:
    """A subscription and the single output its values drive."""

    subscription: ChannelSubscription
    driver: ActuatorDriver

    @property
    def channel(self) -> RemoteChannel:
        return self.subscription.channel


@dataclass(slots=True)
class SteppingAxis:
    """Legacy camera control: two direction flags nudge one servo per tick."""

    left: DirectionLatch
    right: DirectionLatch
    driver: ActuatorDriver
    step: int

    def advance(self) -> bool:
        current = self.driver.current_position
        target = step_position(
            current,
            self.left.pressed,
            self.right.pressed,
            self.step,
            self.driver.target.bounds,
        )
        if target == current:
            return False
        self.driver.apply(target)
        return True


@dataclass(slots=True)
class TickReport:
    status: SupervisorStatus
    writes: int = 0
    results: Dict[str, PollResult] = field(default_factory=dict)

    @property
    def ready(self) -> bool:
        return self.status is SupervisorStatus.READY


class Scheduler:
    """Drives one tick at a time: gate, poll, map, apply.

    ``tick`` does not sleep, so tests and other loops can drive it directly;
    ``run`` adds the fixed inter-tick period.
    """

    def __init__(
        self,
        supervisor: ConnectionSupervisor,
        bindings: Sequence[ChannelBinding],
        *,
        tick_interval: float,
        stepping_axes: Sequence[SteppingAxis] = (),
        health: Optional[HealthReporter] = None,
    ) -> None:
        names = [binding.channel.name for binding in bindings]
        if len(set(names)) != len(names):
            raise ValueError("Channel names must be unique")

        drivers = [id(binding.driver) for binding in bindings]
        if len(set(drivers)) != len(drivers):
            raise ValueError("Each output may be bound to only one channel")

        self._supervisor = supervisor
        self._bindings = tuple(bindings)
        self._stepping_axes = tuple(stepping_axes)
        self._health = health
        self._reported: Dict[str, str] = {}
        self.tick_interval = tick_interval

    @property
    def bindings(self) -> tuple[ChannelBinding, ...]:
        return self._bindings

    async def tick(self) -> TickReport:
        status = await self._supervisor.tick()
        report = TickReport(status=status)

        if status is SupervisorStatus.READY:
            for binding in self._bindings:
                result = binding.subscription.poll()
                report.results[binding.channel.name] = result

                # Timeouts and transport errors keep the stale position.
                if result.status is PollStatus.NEW_VALUE and result.value is not None:
                    binding.driver.apply(map_command(binding.channel, result.value))
                    report.writes += 1

            for axis in self._stepping_axes:
                if axis.advance():
                    report.writes += 1

        await self._report_channels()
        return report

    async def run(self, stop_event: asyncio.Event) -> None:
        LOGGER.info(
            "Scheduler running %d channel(s) every %.0f ms",
            len(self._bindings),
            self.tick_interval * 1000,
        )
        while not stop_event.is_set():
            try:
                await self.tick()
            except asyncio.CancelledError:
                raise
            except Exception:
                # Outputs hold their last positions; the next tick retries.
                LOGGER.exception("Scheduler tick failed")

            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.tick_interval)
            except asyncio.TimeoutError:
                pass

    async def _report_channels(self) -> None:
        if self._health is None:
            return

        for binding in self._bindings:
            state = binding.subscription.state
            if state.timed_out:
                detail = "timed out"
            elif state.subscribed:
                detail = "subscribed"
            else:
                detail = "unsubscribed"

            name = f"channel:{binding.channel.name}"
            if self._reported.get(name) == detail:
                continue
            self._reported[name] = detail
            await self._health.update(name, detail == "subscribed", detail)
