"""Command-line interface for cathome-sync."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from . import constants
from .app import CatHomeSyncApp
from .config import load_config, save_config
from .core.models import ChannelKind

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=constants.APP_NAME,
        description="Sync heater, relay and servo outputs with a Realtime Database",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=constants.DEFAULT_CONFIG_PATH,
        help=f"Path to configuration file (default: {constants.DEFAULT_CONFIG_PATH})",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("start", help="Start the sync service")
    subparsers.add_parser(
        "show-config", help="Print the resolved configuration and exit"
    )
    subparsers.add_parser(
        "channels", help="List the channels that will be subscribed, in tick order"
    )

    init_parser = subparsers.add_parser(
        "init-config", help="Write a configuration file populated with defaults"
    )
    init_parser.add_argument(
        "--force", action="store_true", help="Overwrite an existing configuration file"
    )

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "init-config" and args.config.exists() and not args.force:
        LOGGER.error("%s already exists. Use --force to overwrite.", args.config)
        return 1

    try:
        config = load_config(args.config)
    except ValueError as exc:
        LOGGER.error("Invalid configuration: %s", exc)
        return 1

    if args.command == "start":
        CatHomeSyncApp.start(config)
        return 0

    if args.command == "show-config":
        print(f"Configuration loaded from {config.path!s}\n")
        for section in config.raw.sections():
            print(f"[{section}]")
            for key, value in config.raw[section].items():
                print(f"{key} = {value}")
            print()
        return 0

    if args.command == "channels":
        print(f"camera mode: {config.actuators.camera_mode}")
        for channel in config.active_channels():
            bounds = (
                f"[{channel.minimum}, {channel.maximum}]"
                if channel.kind is ChannelKind.CONTINUOUS
                else "on/off"
            )
            pin = channel.pin if channel.pin is not None else "-"
            print(f"{channel.name:<14} {channel.path:<28} {bounds:<11} pin {pin}")
        return 0

    if args.command == "init-config":
        save_config(config)
        print(f"Wrote {config.path!s}")
        return 0

    LOGGER.error("Unknown command: %s", args.command)
    return 1


if __name__ == "__main__":
    sys.exit(main())
