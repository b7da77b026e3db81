import pytest

from cathome_sync.core.models import BinaryCommand, Bounds, RemoteChannel
from cathome_sync.mapper import map_binary, map_command, map_continuous, step_position

CAMERA = Bounds(0, 180)
LASER = Bounds(10, 170)


@pytest.mark.parametrize("raw", [-100, -1, 0, 2, 3, 180, 2**31])
def test_binary_values_other_than_one_map_to_off(raw):
    assert map_binary(raw) is BinaryCommand.OFF


def test_binary_one_maps_to_on():
    assert map_binary(1) is BinaryCommand.ON


@pytest.mark.parametrize(
    "raw,expected", [(-50, 0), (0, 0), (90, 90), (180, 180), (200, 180)]
)
def test_camera_axis_clamps_to_full_range(raw, expected):
    assert map_continuous(raw, CAMERA) == expected == max(0, min(180, raw))


@pytest.mark.parametrize(
    "raw,expected", [(-1, 10), (5, 10), (10, 10), (95, 95), (170, 170), (171, 170)]
)
def test_laser_axis_clamps_to_safe_range(raw, expected):
    assert map_continuous(raw, LASER) == expected == max(10, min(170, raw))


def test_map_command_uses_channel_kind_and_bounds():
    heater = RemoteChannel.binary("heater", "/heating_pad/state")
    camera_x = RemoteChannel.continuous("camera_x", "/camera_servo/x_angle", CAMERA)
    laser_x = RemoteChannel.continuous("laser_x", "/laser_servo/x_angle", LASER)

    assert map_command(heater, 1) is BinaryCommand.ON
    assert map_command(heater, 0) is BinaryCommand.OFF
    assert map_command(camera_x, 200) == 180
    assert map_command(laser_x, 5) == 10
    assert map_command(laser_x, 200) == 170


def test_repeated_raw_values_map_identically():
    laser_x = RemoteChannel.continuous("laser_x", "/laser_servo/x_angle", LASER)

    first = [map_command(laser_x, raw) for raw in (5, 90, 300)]
    second = [map_command(laser_x, raw) for raw in (5, 90, 300)]

    assert first == second == [10, 90, 170]


def test_step_position_moves_in_pressed_direction():
    assert step_position(90, True, False, 5, CAMERA) == 85
    assert step_position(90, False, True, 5, CAMERA) == 95


@pytest.mark.parametrize("left,right", [(False, False), (True, True)])
def test_step_position_holds_without_single_direction(left, right):
    assert step_position(90, left, right, 5, CAMERA) == 90


def test_step_position_saturates_at_bounds():
    assert step_position(3, True, False, 5, CAMERA) == 0
    assert step_position(178, False, True, 5, CAMERA) == 180
    assert step_position(12, True, False, 5, LASER) == 10


def test_bounds_reject_inverted_range():
    with pytest.raises(ValueError):
        Bounds(170, 10)


def test_bounds_membership():
    assert 10 in LASER
    assert 170 in LASER
    assert 5 not in LASER
    assert 200 not in CAMERA


def test_continuous_channels_default_to_silent_errors():
    camera_x = RemoteChannel.continuous("camera_x", "/camera_servo/x_angle", CAMERA)
    heater = RemoteChannel.binary("heater", "/heating_pad/state")

    assert camera_x.policy.resubscribe_on_timeout is True
    assert camera_x.policy.log_on_error is False
    assert heater.policy.resubscribe_on_timeout is True
    assert heater.policy.log_on_error is True
