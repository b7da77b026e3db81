from pathlib import Path

import pytest

from cathome_sync import constants
from cathome_sync.config import load_config, save_config
from cathome_sync.core.models import Bounds, ChannelKind


def test_load_config_defaults(tmp_path: Path) -> None:
    config_path = tmp_path / "cathome-sync.cfg"
    config = load_config(config_path)

    assert config.path == config_path
    assert config.database.url == constants.DEFAULT_DATABASE_URL
    assert config.database.auth_token is None
    assert config.database.keepalive_timeout_seconds == 45.0
    assert config.scheduler.tick_interval_seconds == 0.02
    assert config.network.interface is None
    assert config.resilience.reconnect_initial_seconds == 1.0
    assert config.resilience.reconnect_max_seconds == 30.0
    assert config.resilience.bootstrap_attempts == 10
    assert config.resilience.health_enabled is False
    assert config.actuators.pin_factory == "default"
    assert config.actuators.camera_mode == "absolute"
    assert config.actuators.skip_redundant_writes is False
    assert config.stepping is False


def test_default_channel_table(tmp_path: Path) -> None:
    config = load_config(tmp_path / "cathome-sync.cfg")

    table = {
        channel.name: (channel.path, channel.kind, channel.pin, channel.minimum, channel.maximum)
        for channel in config.channels
    }
    assert table["heater"] == ("/heating_pad/state", ChannelKind.BINARY, 5, 0, 1)
    assert table["sensor_relay"] == ("/temperature_sensor/state", ChannelKind.BINARY, 18, 0, 1)
    assert table["camera_x"] == ("/camera_servo/x_angle", ChannelKind.CONTINUOUS, 12, 0, 180)
    assert table["camera_y"] == ("/camera_servo/y_angle", ChannelKind.CONTINUOUS, 13, 0, 180)
    assert table["laser_x"] == ("/laser_servo/x_angle", ChannelKind.CONTINUOUS, 19, 10, 170)
    assert table["laser_y"] == ("/laser_servo/y_angle", ChannelKind.CONTINUOUS, 26, 10, 170)

    assert config.channel("heater").log_on_error is True
    assert config.channel("camera_x").log_on_error is False
    assert config.channel("laser_y").to_remote_channel().bounds == Bounds(10, 170)


def test_absolute_mode_channels_in_tick_order(tmp_path: Path) -> None:
    config = load_config(tmp_path / "cathome-sync.cfg")

    names = [channel.name for channel in config.active_channels()]

    assert names == ["heater", "sensor_relay", "camera_x", "camera_y", "laser_x", "laser_y"]


def test_stepping_mode_swaps_camera_x_for_direction_flags(tmp_path: Path) -> None:
    config_path = tmp_path / "cathome-sync.cfg"
    config_path.write_text("[actuators]\ncamera_mode = Stepping\nstep_size = 3\n", encoding="utf-8")

    config = load_config(config_path)
    names = [channel.name for channel in config.active_channels()]

    assert config.stepping is True
    assert config.actuators.step_size == 3
    assert names == [
        "heater",
        "sensor_relay",
        "camera_left",
        "camera_right",
        "camera_y",
        "laser_x",
        "laser_y",
    ]


def test_load_config_overrides_defaults(tmp_path: Path) -> None:
    config_file = tmp_path / "cathome-sync.cfg"
    config_file.write_text(
        """
[database]
url = https://example-rtdb.firebaseio.com
auth_token = secret
keepalive_timeout_seconds = 60

[network]
interface = wlan0
reassociate_command = wpa_cli -i wlan0 reassociate

[scheduler]
tick_interval_seconds = 0.05

[resilience]
reconnect_initial_seconds = 2
health_enabled = true
health_port = 8765

[actuators]
pin_factory = mock
skip_redundant_writes = true

[logging]
level = DEBUG
path =

[channel laser_x]
minimum = 20
maximum = 160

[channel sensor_relay]
enabled = false
"""
    )

    config = load_config(config_file)

    assert config.database.url == "https://example-rtdb.firebaseio.com"
    assert config.database.auth_token == "secret"
    assert config.database.keepalive_timeout_seconds == 60.0
    assert config.network.interface == "wlan0"
    assert config.network.reassociate_command == "wpa_cli -i wlan0 reassociate"
    assert config.scheduler.tick_interval_seconds == 0.05
    assert config.resilience.reconnect_initial_seconds == 2.0
    assert config.resilience.health_enabled is True
    assert config.resilience.health_port == 8765
    assert config.actuators.pin_factory == "mock"
    assert config.actuators.skip_redundant_writes is True
    assert config.logging.level == "DEBUG"
    assert config.logging.path is None

    laser_x = config.channel("laser_x")
    assert (laser_x.minimum, laser_x.maximum) == (20, 160)
    assert "sensor_relay" not in [channel.name for channel in config.active_channels()]


def test_load_config_saturates_out_of_range_values(tmp_path: Path) -> None:
    config_file = tmp_path / "cathome-sync.cfg"
    config_file.write_text(
        """
[database]
keepalive_timeout_seconds = 0

[resilience]
reconnect_jitter_ratio = 4
bootstrap_attempts = 0

[actuators]
initial_angle = 500

[channel camera_y]
minimum = -30
maximum = 400
"""
    )

    config = load_config(config_file)

    assert config.database.keepalive_timeout_seconds == 1.0
    assert config.resilience.reconnect_jitter_ratio == 1.0
    assert config.resilience.bootstrap_attempts == 1
    assert config.actuators.initial_angle == 180
    camera_y = config.channel("camera_y")
    assert (camera_y.minimum, camera_y.maximum) == (0, 180)


def test_load_config_rejects_inverted_bounds(tmp_path: Path) -> None:
    config_file = tmp_path / "cathome-sync.cfg"
    config_file.write_text("[channel laser_y]\nminimum = 170\nmaximum = 10\n")

    with pytest.raises(ValueError, match="channel laser_y"):
        load_config(config_file)


def test_load_config_rejects_unknown_camera_mode(tmp_path: Path) -> None:
    config_file = tmp_path / "cathome-sync.cfg"
    config_file.write_text("[actuators]\ncamera_mode = joystick\n")

    with pytest.raises(ValueError, match="camera_mode"):
        load_config(config_file)


def test_unknown_channel_lookup_raises(tmp_path: Path) -> None:
    config = load_config(tmp_path / "cathome-sync.cfg")

    with pytest.raises(KeyError):
        config.channel("feeder")


def test_save_config_round_trips(tmp_path: Path) -> None:
    config_path = tmp_path / "nested" / "cathome-sync.cfg"
    config = load_config(config_path)
    config.raw.set("database", "auth_token", "persisted")

    save_config(config)
    reloaded = load_config(config_path)

    assert config_path.exists()
    assert reloaded.database.auth_token == "persisted"
    assert [c.name for c in reloaded.channels] == [c.name for c in config.channels]
