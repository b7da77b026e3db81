"""Turn raw remote values into bounded actuator commands.

Everything here is a pure function. Bounds travel with the channel, so the
same raw value can map to different positions on different axes.
"""

from __future__ import annotations

from typing import Union

from .core.models import BinaryCommand, Bounds, ChannelKind, RemoteChannel

Command = Union[BinaryCommand, int]


def map_binary(raw: int) -> BinaryCommand:
    # Anything other than exactly 1 means off, including negatives and values > 1.
    if raw == 1:
        return BinaryCommand.ON
    return BinaryCommand.OFF


def map_continuous(raw: int, bounds: Bounds) -> int:
    return bounds.clamp(raw)


def map_command(channel: RemoteChannel, raw: int) -> Command:
    """Map a raw value for the given channel's kind and bounds."""

    if channel.kind is ChannelKind.BINARY:
        return map_binary(raw)
    return map_continuous(raw, channel.bounds)


def step_position(
    current: int, left: bool, right: bool, step: int, bounds: Bounds
) -> int:
    """Advance a position one step in the pressed direction.

    Used by the legacy camera mode where two direction flags move the servo
    incrementally. Pressing both or neither holds the position.
    """

    if left and not right:
        return bounds.clamp(current - step)
    if right and not left:
        return bounds.clamp(current + step)
    return bounds.clamp(current)
