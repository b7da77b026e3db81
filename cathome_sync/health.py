"""Health reporting for the sync service."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from aiohttp import web

LOGGER = logging.getLogger(__name__)

ChannelSnapshot = Callable[[], List[Dict[str, object]]]


@dataclass(slots=True)
class ComponentStatus:
    name: str
    healthy: bool
    detail: Optional[str] = None
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def as_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "healthy": self.healthy,
            "detail": self.detail,
            "updatedAt": self.updated_at.isoformat(timespec="seconds"),
        }


class HealthReporter:
    """Tracks connectivity, channel and agent statuses.

    Connectivity components (``network``, ``backend``) decide the overall
    status; a single unhealthy channel only degrades that channel, matching
    how the scheduler keeps running around it.
    """

    _AGENT_KEY = "__agent_state__"
    CRITICAL_COMPONENTS = frozenset({"network", "backend"})

    def __init__(self) -> None:
        self._status: Dict[str, ComponentStatus] = {}
        self._lock = asyncio.Lock()

    async def update(
        self, name: str, healthy: bool, detail: Optional[str] = None
    ) -> None:
        async with self._lock:
            self._status[name] = ComponentStatus(
                name=name, healthy=healthy, detail=detail
            )

    async def set_agent_state(
        self, state: str, *, healthy: bool, detail: Optional[str] = None
    ) -> None:
        await self.update(self._AGENT_KEY, healthy, detail if detail is not None else state)

    async def snapshot(self) -> Dict[str, object]:
        async with self._lock:
            entries = list(self._status.values())

        agent_state: Optional[ComponentStatus] = None
        components: list[Dict[str, object]] = []
        degraded_channels: list[str] = []
        critical_ok = True

        for status in entries:
            if status.name == self._AGENT_KEY:
                agent_state = status
                continue
            components.append(status.as_dict())
            if status.healthy:
                continue
            if status.name in self.CRITICAL_COMPONENTS:
                critical_ok = False
            else:
                degraded_channels.append(status.name)

        overall = "ok" if critical_ok else "degraded"
        if agent_state is not None and not agent_state.healthy:
            overall = "degraded"

        payload: Dict[str, object] = {
            "status": overall,
            "components": components,
            "degradedChannels": degraded_channels,
        }
        if agent_state is not None:
            payload["agentState"] = {
                "state": agent_state.detail,
                "healthy": agent_state.healthy,
                "updatedAt": agent_state.updated_at.isoformat(timespec="seconds"),
            }

        return payload


class HealthServer:
    """HTTP endpoint exposing ``/healthz`` and the live ``/channels`` table."""

    def __init__(
        self,
        reporter: HealthReporter,
        host: str,
        port: int,
        *,
        channels: Optional[ChannelSnapshot] = None,
    ) -> None:
        self._reporter = reporter
        self._host = host
        self._port = port
        self._channels = channels
        self._runner: Optional[web.AppRunner] = None
        self._site: Optional[web.TCPSite] = None

    async def start(self) -> None:
        app = web.Application()
        app.router.add_get("/healthz", self._handle_health)
        app.router.add_get("/channels", self._handle_channels)

        self._runner = web.AppRunner(app)
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self._host, self._port)
        await self._site.start()
        LOGGER.info(
            "Health endpoint listening on http://%s:%s/healthz", self._host, self._port
        )

    async def stop(self) -> None:
        with contextlib.suppress(Exception):
            if self._site is not None:
                await self._site.stop()
        if self._runner is not None:
            await self._runner.cleanup()
        self._site = None
        self._runner = None

    async def _handle_health(self, request: web.Request) -> web.Response:
        snapshot = await self._reporter.snapshot()
        status = 200 if snapshot["status"] == "ok" else 503
        return web.json_response(snapshot, status=status)

    async def _handle_channels(self, request: web.Request) -> web.Response:
        channels = self._channels() if self._channels is not None else []
        return web.json_response({"channels": channels})
