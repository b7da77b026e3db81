"""Logging configuration helpers."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# The agent runs unattended on an SD card; keep the file log bounded.
LOG_MAX_BYTES = 1_000_000
LOG_BACKUP_COUNT = 3

NETWORK_LOGGERS = ("aiohttp.access", "aiohttp.client", "asyncio", "gpiozero")


def configure_logging(
    level: str = "INFO", *, log_path: Optional[Path] = None, log_network: bool = False
) -> None:
    """Install console logging and, optionally, a rotating file log.

    ``log_network`` keeps the HTTP, event-loop and GPIO libraries at the root
    level; otherwise they only report warnings.
    """

    logging.captureWarnings(True)

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )

    if log_path:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=LOG_MAX_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(file_handler)

    for name in NETWORK_LOGGERS:
        logging.getLogger(name).setLevel(logging.NOTSET if log_network else logging.WARNING)
