"""Keep heater, relay and servo outputs in sync with a Firebase Realtime Database."""

__version__ = "0.1.0"
