"""Configuration loader for cathome-sync."""

from __future__ import annotations

from configparser import ConfigParser
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from . import constants
from .core.models import Bounds, ChannelKind, ChannelPolicy, RemoteChannel

CAMERA_MODES = ("absolute", "stepping")


@dataclass(slots=True)
class DatabaseConfig:
    url: str = constants.DEFAULT_DATABASE_URL
    auth_token: Optional[str] = None  # Database secret or ID token, sent as ?auth=
    keepalive_timeout_seconds: float = constants.DEFAULT_KEEPALIVE_TIMEOUT_SECONDS
    request_timeout_seconds: float = 10.0


@dataclass(slots=True)
class NetworkConfig:
    interface: Optional[str] = None
    reassociate_command: Optional[str] = None
    reassociate_timeout_seconds: float = 30.0
    association_poll_seconds: float = 0.25


@dataclass(slots=True)
class SchedulerConfig:
    tick_interval_seconds: float = constants.DEFAULT_TICK_INTERVAL_SECONDS


@dataclass(slots=True)
class ResilienceConfig:
    reconnect_initial_seconds: float = 1.0
    reconnect_max_seconds: float = 30.0
    reconnect_jitter_ratio: float = 0.5
    bootstrap_attempts: int = constants.DEFAULT_BOOTSTRAP_ATTEMPTS
    bootstrap_delay_seconds: float = constants.DEFAULT_BOOTSTRAP_DELAY_SECONDS
    health_enabled: bool = False
    health_host: str = "127.0.0.1"
    health_port: int = 0


@dataclass(slots=True)
class ActuatorConfig:
    pin_factory: str = "default"
    skip_redundant_writes: bool = False
    servo_min_pulse_width: float = 0.5 / 1000
    servo_max_pulse_width: float = 2.5 / 1000
    camera_mode: str = "absolute"
    step_size: int = constants.DEFAULT_STEP_SIZE
    initial_angle: int = constants.DEFAULT_SERVO_ANGLE


@dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"
    path: Optional[Path] = constants.DEFAULT_LOG_PATH
    log_network: bool = False


@dataclass(slots=True)
class ChannelConfig:
    name: str
    path: str
    kind: ChannelKind
    pin: Optional[int] = None
    minimum: int = 0
    maximum: int = 1
    log_on_error: bool = True
    resubscribe_on_timeout: bool = True
    enabled: bool = True

    def to_remote_channel(self) -> RemoteChannel:
        return RemoteChannel(
            name=self.name,
            path=self.path,
            kind=self.kind,
            bounds=Bounds(self.minimum, self.maximum),
            policy=ChannelPolicy(
                resubscribe_on_timeout=self.resubscribe_on_timeout,
                log_on_error=self.log_on_error,
            ),
        )


# Declared evaluation order; the scheduler walks channels in exactly this order.
DEFAULT_CHANNELS: List[ChannelConfig] = [
    ChannelConfig("heater", "/heating_pad/state", ChannelKind.BINARY, pin=5),
    ChannelConfig(
        "sensor_relay", "/temperature_sensor/state", ChannelKind.BINARY, pin=18
    ),
    ChannelConfig(
        "camera_left", "/camera_servo/left", ChannelKind.BINARY, log_on_error=False
    ),
    ChannelConfig(
        "camera_right", "/camera_servo/right", ChannelKind.BINARY, log_on_error=False
    ),
    ChannelConfig(
        "camera_x",
        "/camera_servo/x_angle",
        ChannelKind.CONTINUOUS,
        pin=12,
        minimum=constants.SERVO_RANGE[0],
        maximum=constants.SERVO_RANGE[1],
        log_on_error=False,
    ),
    ChannelConfig(
        "camera_y",
        "/camera_servo/y_angle",
        ChannelKind.CONTINUOUS,
        pin=13,
        minimum=constants.SERVO_RANGE[0],
        maximum=constants.SERVO_RANGE[1],
        log_on_error=False,
    ),
    ChannelConfig(
        "laser_x",
        "/laser_servo/x_angle",
        ChannelKind.CONTINUOUS,
        pin=19,
        minimum=constants.LASER_SAFE_RANGE[0],
        maximum=constants.LASER_SAFE_RANGE[1],
        log_on_error=False,
    ),
    ChannelConfig(
        "laser_y",
        "/laser_servo/y_angle",
        ChannelKind.CONTINUOUS,
        pin=26,
        minimum=constants.LASER_SAFE_RANGE[0],
        maximum=constants.LASER_SAFE_RANGE[1],
        log_on_error=False,
    ),
]

LEGACY_DIRECTION_CHANNELS = ("camera_left", "camera_right")
STEPPING_AXIS_CHANNEL = "camera_x"


@dataclass(slots=True)
class SyncConfig:
    database: DatabaseConfig
    network: NetworkConfig
    scheduler: SchedulerConfig
    resilience: ResilienceConfig
    actuators: ActuatorConfig
    logging: LoggingConfig
    channels: List[ChannelConfig]
    raw: ConfigParser
    path: Path

    @property
    def stepping(self) -> bool:
        return self.actuators.camera_mode == "stepping"

    def channel(self, name: str) -> ChannelConfig:
        for channel in self.channels:
            if channel.name == name:
                return channel
        raise KeyError(name)

    def active_channels(self) -> List[ChannelConfig]:
        """Channels to subscribe, in evaluation order.

        The stepping camera mode swaps the absolute camera x angle for the two
        direction flags; the two schemes never drive the same axis together.
        """

        if self.stepping:
            excluded = {STEPPING_AXIS_CHANNEL}
        else:
            excluded = set(LEGACY_DIRECTION_CHANNELS)
        return [
            channel
            for channel in self.channels
            if channel.enabled and channel.name not in excluded
        ]


def _channel_section(name: str) -> str:
    return f"channel {name}"


def _channel_defaults() -> Dict[str, Dict[str, str]]:
    sections: Dict[str, Dict[str, str]] = {}
    for channel in DEFAULT_CHANNELS:
        values = {
            "path": channel.path,
            "log_on_error": str(channel.log_on_error).lower(),
            "resubscribe_on_timeout": str(channel.resubscribe_on_timeout).lower(),
            "enabled": "true",
        }
        if channel.pin is not None:
            values["pin"] = str(channel.pin)
        if channel.kind is ChannelKind.CONTINUOUS:
            values["minimum"] = str(channel.minimum)
            values["maximum"] = str(channel.maximum)
        sections[_channel_section(channel.name)] = values
    return sections


def _parse_path(value: str) -> Optional[Path]:
    if not value.strip():
        return None
    return Path(value.strip()).expanduser()


def _load_channel(parser: ConfigParser, default: ChannelConfig) -> ChannelConfig:
    section = _channel_section(default.name)

    minimum, maximum = default.minimum, default.maximum
    if default.kind is ChannelKind.CONTINUOUS:
        low, high = constants.SERVO_RANGE
        minimum = max(low, min(high, parser.getint(section, "minimum", fallback=minimum)))
        maximum = max(low, min(high, parser.getint(section, "maximum", fallback=maximum)))
        if minimum > maximum:
            raise ValueError(
                f"[{section}] minimum {minimum} exceeds maximum {maximum}"
            )

    pin_value = parser.get(section, "pin", fallback="").strip()

    return ChannelConfig(
        name=default.name,
        path=parser.get(section, "path", fallback=default.path),
        kind=default.kind,
        pin=int(pin_value) if pin_value else None,
        minimum=minimum,
        maximum=maximum,
        log_on_error=parser.getboolean(
            section, "log_on_error", fallback=default.log_on_error
        ),
        resubscribe_on_timeout=parser.getboolean(
            section, "resubscribe_on_timeout", fallback=default.resubscribe_on_timeout
        ),
        enabled=parser.getboolean(section, "enabled", fallback=True),
    )


def load_config(path: Optional[Path] = None) -> SyncConfig:
    """Load configuration from disk, applying defaults where necessary."""

    config_path = path or constants.DEFAULT_CONFIG_PATH
    parser = ConfigParser()
    parser.read_dict(
        {
            "database": {
                "url": constants.DEFAULT_DATABASE_URL,
                "keepalive_timeout_seconds": str(
                    constants.DEFAULT_KEEPALIVE_TIMEOUT_SECONDS
                ),
                "request_timeout_seconds": "10.0",
            },
            "network": {
                "reassociate_timeout_seconds": "30.0",
                "association_poll_seconds": "0.25",
            },
            "scheduler": {
                "tick_interval_seconds": str(constants.DEFAULT_TICK_INTERVAL_SECONDS),
            },
            "resilience": {
                "reconnect_initial_seconds": "1.0",
                "reconnect_max_seconds": "30.0",
                "reconnect_jitter_ratio": "0.5",
                "bootstrap_attempts": str(constants.DEFAULT_BOOTSTRAP_ATTEMPTS),
                "bootstrap_delay_seconds": str(constants.DEFAULT_BOOTSTRAP_DELAY_SECONDS),
                "health_enabled": "false",
                "health_host": "127.0.0.1",
                "health_port": "0",
            },
            "actuators": {
                "pin_factory": "default",
                "skip_redundant_writes": "false",
                "servo_min_pulse_width": "0.0005",
                "servo_max_pulse_width": "0.0025",
                "camera_mode": "absolute",
                "step_size": str(constants.DEFAULT_STEP_SIZE),
                "initial_angle": str(constants.DEFAULT_SERVO_ANGLE),
            },
            "logging": {
                "level": "INFO",
                "path": str(constants.DEFAULT_LOG_PATH),
                "log_network": "false",
            },
            **_channel_defaults(),
        }
    )

    if config_path.exists():
        parser.read(config_path)

    database = DatabaseConfig(
        url=parser.get("database", "url"),
        auth_token=parser.get("database", "auth_token", fallback=None) or None,
        keepalive_timeout_seconds=max(
            1.0,
            parser.getfloat(
                "database",
                "keepalive_timeout_seconds",
                fallback=constants.DEFAULT_KEEPALIVE_TIMEOUT_SECONDS,
            ),
        ),
        request_timeout_seconds=max(
            0.1, parser.getfloat("database", "request_timeout_seconds", fallback=10.0)
        ),
    )

    network = NetworkConfig(
        interface=parser.get("network", "interface", fallback=None) or None,
        reassociate_command=parser.get("network", "reassociate_command", fallback=None)
        or None,
        reassociate_timeout_seconds=max(
            1.0,
            parser.getfloat("network", "reassociate_timeout_seconds", fallback=30.0),
        ),
        association_poll_seconds=max(
            0.01,
            parser.getfloat("network", "association_poll_seconds", fallback=0.25),
        ),
    )

    scheduler = SchedulerConfig(
        tick_interval_seconds=max(
            0.001,
            parser.getfloat(
                "scheduler",
                "tick_interval_seconds",
                fallback=constants.DEFAULT_TICK_INTERVAL_SECONDS,
            ),
        ),
    )

    resilience = ResilienceConfig(
        reconnect_initial_seconds=max(
            0.0, parser.getfloat("resilience", "reconnect_initial_seconds", fallback=1.0)
        ),
        reconnect_max_seconds=max(
            0.0, parser.getfloat("resilience", "reconnect_max_seconds", fallback=30.0)
        ),
        reconnect_jitter_ratio=max(
            0.0,
            min(
                1.0,
                parser.getfloat("resilience", "reconnect_jitter_ratio", fallback=0.5),
            ),
        ),
        bootstrap_attempts=max(
            1,
            parser.getint(
                "resilience",
                "bootstrap_attempts",
                fallback=constants.DEFAULT_BOOTSTRAP_ATTEMPTS,
            ),
        ),
        bootstrap_delay_seconds=max(
            0.0,
            parser.getfloat(
                "resilience",
                "bootstrap_delay_seconds",
                fallback=constants.DEFAULT_BOOTSTRAP_DELAY_SECONDS,
            ),
        ),
        health_enabled=parser.getboolean(
            "resilience", "health_enabled", fallback=False
        ),
        health_host=parser.get("resilience", "health_host", fallback="127.0.0.1"),
        health_port=parser.getint("resilience", "health_port", fallback=0),
    )

    camera_mode = parser.get("actuators", "camera_mode", fallback="absolute").strip().lower()
    if camera_mode not in CAMERA_MODES:
        raise ValueError(
            f"[actuators] camera_mode must be one of {', '.join(CAMERA_MODES)}, "
            f"got {camera_mode!r}"
        )

    actuators = ActuatorConfig(
        pin_factory=parser.get("actuators", "pin_factory", fallback="default"),
        skip_redundant_writes=parser.getboolean(
            "actuators", "skip_redundant_writes", fallback=False
        ),
        servo_min_pulse_width=parser.getfloat(
            "actuators", "servo_min_pulse_width", fallback=0.0005
        ),
        servo_max_pulse_width=parser.getfloat(
            "actuators", "servo_max_pulse_width", fallback=0.0025
        ),
        camera_mode=camera_mode,
        step_size=max(
            1,
            parser.getint(
                "actuators", "step_size", fallback=constants.DEFAULT_STEP_SIZE
            ),
        ),
        initial_angle=max(
            constants.SERVO_RANGE[0],
            min(
                constants.SERVO_RANGE[1],
                parser.getint(
                    "actuators",
                    "initial_angle",
                    fallback=constants.DEFAULT_SERVO_ANGLE,
                ),
            ),
        ),
    )

    logging_config = LoggingConfig(
        level=parser.get("logging", "level", fallback="INFO"),
        path=_parse_path(parser.get("logging", "path", fallback="")),
        log_network=parser.getboolean("logging", "log_network", fallback=False),
    )

    channels = [_load_channel(parser, default) for default in DEFAULT_CHANNELS]

    return SyncConfig(
        database=database,
        network=network,
        scheduler=scheduler,
        resilience=resilience,
        actuators=actuators,
        logging=logging_config,
        channels=channels,
        raw=parser,
        path=config_path,
    )


def save_config(config: SyncConfig) -> None:
    """Persist the current configuration to disk."""

    config_path = config.path
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w", encoding="utf-8") as stream:
        config.raw.write(stream)
