"""Physical outputs driven by mapped commands."""

from __future__ import annotations

import logging
from typing import Optional

from gpiozero import AngularServo, DigitalOutputDevice
from gpiozero.pins import Factory
from gpiozero.pins.mock import MockFactory, MockPWMPin

from .constants import SERVO_RANGE
from .core.models import BINARY_BOUNDS, ActuatorTarget, Bounds, ChannelKind
from .mapper import Command

LOGGER = logging.getLogger(__name__)


class ActuatorDriver:
    """Base class for an output bound to exactly one channel.

    ``apply`` clamps the command into the target's bounds before writing, so
    the tracked position can never leave them.
    """

    def __init__(
        self,
        name: str,
        target: ActuatorTarget,
        *,
        skip_redundant_writes: bool = False,
    ) -> None:
        self.name = name
        self.target = target
        self.skip_redundant_writes = skip_redundant_writes
        self.write_count = 0

    @property
    def current_position(self) -> int:
        return self.target.current_position

    def apply(self, command: Command) -> None:
        position = self.target.bounds.clamp(int(command))
        if self.skip_redundant_writes and position == self.target.current_position:
            return

        self._write(position)
        self.target.current_position = position
        self.write_count += 1
        LOGGER.debug("%s -> %d", self.name, position)

    def close(self) -> None:
        """Release the underlying device."""

    def _write(self, position: int) -> None:
        raise NotImplementedError


class DigitalActuator(ActuatorDriver):
    """Two-level output (heater, sensor relay)."""

    def __init__(
        self,
        name: str,
        pin: int,
        *,
        pin_factory: Optional[Factory] = None,
        skip_redundant_writes: bool = False,
    ) -> None:
        super().__init__(
            name,
            ActuatorTarget(ChannelKind.BINARY, BINARY_BOUNDS, 0),
            skip_redundant_writes=skip_redundant_writes,
        )
        self._device = DigitalOutputDevice(
            pin, initial_value=False, pin_factory=pin_factory
        )

    @property
    def device(self) -> DigitalOutputDevice:
        return self._device

    def _write(self, position: int) -> None:
        if position:
            self._device.on()
        else:
            self._device.off()

    def close(self) -> None:
        self._device.close()


class ServoActuator(ActuatorDriver):
    """Hobby servo positioned in angular units across the mechanical range.

    The channel bounds may be narrower than the mechanical range, e.g. to keep
    a laser mount away from its end-stops.
    """

    def __init__(
        self,
        name: str,
        pin: int,
        bounds: Bounds,
        *,
        initial_angle: int,
        min_pulse_width: float = 0.5 / 1000,
        max_pulse_width: float = 2.5 / 1000,
        pin_factory: Optional[Factory] = None,
        skip_redundant_writes: bool = False,
    ) -> None:
        super().__init__(
            name,
            ActuatorTarget(ChannelKind.CONTINUOUS, bounds, initial_angle),
            skip_redundant_writes=skip_redundant_writes,
        )
        self._device = AngularServo(
            pin,
            initial_angle=self.target.current_position,
            min_angle=SERVO_RANGE[0],
            max_angle=SERVO_RANGE[1],
            min_pulse_width=min_pulse_width,
            max_pulse_width=max_pulse_width,
            pin_factory=pin_factory,
        )

    @property
    def device(self) -> AngularServo:
        return self._device

    def _write(self, position: int) -> None:
        self._device.angle = position

    def close(self) -> None:
        self._device.close()


class DirectionLatch(ActuatorDriver):
    """Holds the last "direction pressed" flag for the legacy stepping mode."""

    def __init__(self, name: str) -> None:
        super().__init__(name, ActuatorTarget(ChannelKind.BINARY, BINARY_BOUNDS, 0))

    @property
    def pressed(self) -> bool:
        return self.target.current_position == 1

    def _write(self, position: int) -> None:
        pass


def build_pin_factory(name: str) -> Optional[Factory]:
    """Resolve the configured gpiozero pin factory.

    ``default`` defers to gpiozero's own selection (``GPIOZERO_PIN_FACTORY``
    or the first available backend). ``mock`` uses PWM-capable mock pins.
    """

    normalized = (name or "default").strip().lower()
    if normalized == "default":
        return None
    if normalized == "mock":
        return MockFactory(pin_class=MockPWMPin)
    raise ValueError(f"Unsupported pin factory: {name!r}")
