"""Constants used across the cathome-sync package."""

from __future__ import annotations

from pathlib import Path

APP_NAME = "cathome-sync"
DEFAULT_CONFIG_FILENAME = f"{APP_NAME}.cfg"
DEFAULT_CONFIG_PATH = Path.home() / ".config" / APP_NAME / DEFAULT_CONFIG_FILENAME

DEFAULT_LOG_PATH = Path.home() / ".local" / "state" / APP_NAME / f"{APP_NAME}.log"

DEFAULT_DATABASE_URL = "https://cat-automated-smart-home-default-rtdb.firebaseio.com"

# Firebase sends a keep-alive event roughly every 30 seconds.
DEFAULT_KEEPALIVE_TIMEOUT_SECONDS = 45.0

DEFAULT_TICK_INTERVAL_SECONDS = 0.02

DEFAULT_BOOTSTRAP_ATTEMPTS = 10
DEFAULT_BOOTSTRAP_DELAY_SECONDS = 0.5

DEFAULT_SERVO_ANGLE = 90
DEFAULT_STEP_SIZE = 5

SERVO_RANGE = (0, 180)
LASER_SAFE_RANGE = (10, 170)
