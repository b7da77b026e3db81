"""Firebase Realtime Database adapter over the REST streaming API."""

from __future__ import annotations

import asyncio
import json
import logging
import math
import time
from typing import Any, Callable, Optional

import aiohttp

from ..config import DatabaseConfig
from ..core.errors import (
    BackendNotReady,
    ChannelTimeout,
    ChannelTransportError,
    SubscriptionFailure,
)
from ..core.models import PollResult

LOGGER = logging.getLogger(__name__)

Clock = Callable[[], float]


class RealtimeStream:
    """One server-sent-events subscription to a single integer path.

    A reader task records samples and failures as they arrive; ``poll``
    consumes them synchronously so a scheduler tick sees a stable snapshot.
    """

    def __init__(
        self,
        path: str,
        response: aiohttp.ClientResponse,
        *,
        keepalive_timeout: float,
        clock: Clock = time.monotonic,
        on_auth_revoked: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.path = path
        self._response = response
        self._keepalive_timeout = keepalive_timeout
        self._clock = clock
        self._on_auth_revoked = on_auth_revoked

        self._pending: Optional[int] = None
        self._error: Optional[str] = None
        self._timed_out = False
        self._last_activity = clock()
        self._task: Optional[asyncio.Task[None]] = None

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._read_loop())

    @property
    def timed_out(self) -> bool:
        if not self._timed_out:
            idle = self._clock() - self._last_activity
            self._timed_out = idle > self._keepalive_timeout
        return self._timed_out

    def poll(self) -> PollResult:
        if self._pending is not None:
            value, self._pending = self._pending, None
            return PollResult.new_value(value)

        if self.timed_out:
            return PollResult.timed_out()

        if self._error is not None:
            reason, self._error = self._error, None
            return PollResult.errored(reason)

        return PollResult.no_data()

    async def close(self) -> None:
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception:
                LOGGER.debug("Reader for %s ended with an error", self.path, exc_info=True)
        self._response.close()

    # ------------------------------------------------------------------
    # Reader
    # ------------------------------------------------------------------
    async def _read_loop(self) -> None:
        event: Optional[str] = None
        data_lines: list[str] = []

        try:
            while True:
                line = await self._readline()
                if not line:
                    raise ChannelTransportError("stream closed by server")

                self._last_activity = self._clock()
                text = line.decode("utf-8", errors="replace").rstrip("\r\n")

                if not text:
                    if event is not None or data_lines:
                        self._dispatch(event, "\n".join(data_lines))
                    event, data_lines = None, []
                    continue

                if text.startswith(":"):
                    continue

                field, _, value = text.partition(":")
                if value.startswith(" "):
                    value = value[1:]

                if field == "event":
                    event = value
                elif field == "data":
                    data_lines.append(value)
        except asyncio.CancelledError:
            raise
        except ChannelTimeout as exc:
            LOGGER.debug("%s", exc)
            self._timed_out = True
        except ChannelTransportError as exc:
            self._error = str(exc)
        except (aiohttp.ClientError, ValueError) as exc:
            # ValueError: a line longer than the reader buffer limit.
            self._error = f"transport error: {exc}"

    async def _readline(self) -> bytes:
        try:
            async with asyncio.timeout(self._keepalive_timeout):
                return await self._response.content.readline()
        except TimeoutError as exc:
            raise ChannelTimeout(
                f"No keep-alive on {self.path} for {self._keepalive_timeout:.0f}s"
            ) from exc

    def _dispatch(self, event: Optional[str], data: str) -> None:
        if event == "keep-alive":
            return

        if event in ("put", "patch"):
            try:
                payload = json.loads(data)
            except json.JSONDecodeError:
                self._error = f"malformed {event} payload"
                return

            if not isinstance(payload, dict) or payload.get("path") != "/":
                self._error = f"unexpected {event} payload"
                return

            self._accept(payload.get("data"))
            return

        if event == "cancel":
            self._error = f"stream cancelled by server: {data}"
            return

        if event == "auth_revoked":
            self._error = "credential revoked"
            if self._on_auth_revoked is not None:
                self._on_auth_revoked("credential revoked")
            return

        LOGGER.debug("Ignoring %r event on %s", event, self.path)

    def _accept(self, data: Any) -> None:
        value = coerce_int(data)
        if value is None:
            self._error = f"non-integer value: {data!r}"
            return
        self._pending = value


def coerce_int(data: Any) -> Optional[int]:
    """Read a stored value as an integer the way the device firmware did."""

    if isinstance(data, bool):
        return int(data)
    if isinstance(data, int):
        return data
    if isinstance(data, float):
        return int(data) if math.isfinite(data) else None
    if isinstance(data, str):
        try:
            return int(data.strip())
        except ValueError:
            return None
    return None


class RealtimeDatabaseClient:
    """Session-level access to the Realtime Database."""

    def __init__(
        self,
        config: DatabaseConfig,
        *,
        session: Optional[aiohttp.ClientSession] = None,
        clock: Clock = time.monotonic,
    ) -> None:
        self.config = config
        self._base_url = config.url.rstrip("/")
        self._session = session
        self._owns_session = session is None
        self._clock = clock
        self._ready = False

    @property
    def ready(self) -> bool:
        return self._ready

    def mark_unavailable(self, reason: str) -> None:
        if self._ready:
            LOGGER.warning("Realtime Database session lost: %s", reason)
        self._ready = False

    async def connect(self) -> None:
        """Probe the database once; no retries happen here."""

        session = self._ensure_session()
        url = f"{self._base_url}/.json"
        params = self._params(shallow="true")

        try:
            async with asyncio.timeout(self.config.request_timeout_seconds):
                async with session.get(url, params=params) as response:
                    if response.status in (401, 403):
                        raise BackendNotReady(
                            f"Realtime Database rejected credentials (HTTP {response.status})"
                        )
                    if response.status != 200:
                        raise BackendNotReady(
                            f"Realtime Database returned HTTP {response.status}"
                        )
                    await response.read()
        except TimeoutError as exc:
            self._ready = False
            raise BackendNotReady("Timed out reaching Realtime Database") from exc
        except aiohttp.ClientError as exc:
            self._ready = False
            raise BackendNotReady(f"Realtime Database unreachable: {exc}") from exc
        except BackendNotReady:
            self._ready = False
            raise

        if not self._ready:
            LOGGER.info("Realtime Database connection ready")
        self._ready = True

    async def open_stream(self, path: str) -> RealtimeStream:
        session = self._ensure_session()
        url = f"{self._base_url}{_normalize_path(path)}.json"

        try:
            async with asyncio.timeout(self.config.request_timeout_seconds):
                response = await session.get(
                    url,
                    params=self._params(),
                    headers={"Accept": "text/event-stream"},
                )
                if response.status != 200:
                    status = response.status
                    try:
                        detail = (await response.text(errors="replace")).strip()
                    except aiohttp.ClientError:
                        detail = ""
                    finally:
                        response.release()
                    raise SubscriptionFailure(path, f"HTTP {status} {detail}".strip())
        except TimeoutError as exc:
            # A backend that accepts connections but never answers is not ready.
            self.mark_unavailable(f"timed out opening {path}")
            raise SubscriptionFailure(path, "timed out opening stream") from exc
        except aiohttp.ClientConnectionError as exc:
            self.mark_unavailable(str(exc))
            raise SubscriptionFailure(path, f"connection failed: {exc}") from exc
        except aiohttp.ClientError as exc:
            raise SubscriptionFailure(path, str(exc)) from exc

        stream = RealtimeStream(
            path,
            response,
            keepalive_timeout=self.config.keepalive_timeout_seconds,
            clock=self._clock,
            on_auth_revoked=self.mark_unavailable,
        )
        stream.start()
        return stream

    async def aclose(self) -> None:
        self._ready = False
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=None)
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._owns_session = True
        return self._session

    def _params(self, **extra: str) -> dict[str, str]:
        params = dict(extra)
        if self.config.auth_token:
            params["auth"] = self.config.auth_token
        return params


def _normalize_path(path: str) -> str:
    path = path.strip()
    if not path.startswith("/"):
        path = "/" + path
    return path.rstrip("/")
