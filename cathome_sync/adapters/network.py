"""Network link probing and reassociation."""

from __future__ import annotations

import asyncio
import logging
import shlex
from pathlib import Path
from typing import Optional

from ..config import NetworkConfig
from ..core.errors import NetworkDown

LOGGER = logging.getLogger(__name__)

SYSFS_NET = Path("/sys/class/net")

# "unknown" is reported by drivers that do not track carrier, e.g. some USB NICs.
_UP_STATES = frozenset({"up", "unknown"})


class SystemNetworkLink:
    """Reads the interface operstate from sysfs and reassociates via a command.

    Without a configured interface the link is assumed to be managed by the
    host and always reported as up.
    """

    def __init__(self, config: NetworkConfig, *, sysfs_root: Path = SYSFS_NET) -> None:
        self.config = config
        self._sysfs_root = sysfs_root

    def is_up(self) -> bool:
        interface = self.config.interface
        if not interface:
            return True

        operstate = self._sysfs_root / interface / "operstate"
        try:
            state = operstate.read_text(encoding="utf-8").strip().lower()
        except OSError:
            return False
        return state in _UP_STATES

    async def reassociate(self) -> None:
        command = self.config.reassociate_command
        if not command:
            raise NetworkDown(
                f"Network link {self.config.interface or '<host>'} is down "
                "and no reassociate_command is configured"
            )

        argv = shlex.split(command)
        LOGGER.info("Reassociating network link: %s", command)

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise NetworkDown(f"Failed to run {argv[0]}: {exc}") from exc

        try:
            async with asyncio.timeout(self.config.reassociate_timeout_seconds):
                _, stderr = await process.communicate()
        except TimeoutError as exc:
            process.kill()
            await process.wait()
            raise NetworkDown(
                f"Reassociation timed out after {self.config.reassociate_timeout_seconds:.0f}s"
            ) from exc

        if process.returncode != 0:
            detail = _first_line(stderr)
            raise NetworkDown(
                f"Reassociation exited with status {process.returncode}"
                + (f": {detail}" if detail else "")
            )


def _first_line(payload: Optional[bytes]) -> str:
    if not payload:
        return ""
    text = payload.decode("utf-8", errors="replace").strip()
    return text.splitlines()[0] if text else ""
