"""Per-channel streaming subscriptions."""

from __future__ import annotations

import logging
from typing import Optional

from .core.errors import SubscriptionFailure
from .core.models import ChannelRuntimeState, PollResult, PollStatus, RemoteChannel
from .core.protocols import RemoteStore, ValueStream

LOGGER = logging.getLogger(__name__)


class ChannelSubscription:
    """Owns one channel's stream and its runtime state.

    Only the subscription mutates ``state``. A timed-out stream stays flagged
    until a resubscription succeeds; transport errors are reported according
    to the channel policy but never trigger a resubscription by themselves.
    """

    def __init__(self, channel: RemoteChannel, store: RemoteStore) -> None:
        self.channel = channel
        self.state = ChannelRuntimeState()
        self.last_error: Optional[str] = None
        self._store = store
        self._stream: Optional[ValueStream] = None

    @property
    def name(self) -> str:
        return self.channel.name

    @property
    def needs_resubscribe(self) -> bool:
        return self.state.timed_out and self.channel.policy.resubscribe_on_timeout

    @property
    def never_subscribed(self) -> bool:
        return not self.state.subscribed and not self.state.timed_out

    async def subscribe(self) -> bool:
        """Open the stream; on failure the channel is left unsubscribed."""

        try:
            stream = await self._store.open_stream(self.channel.path)
        except SubscriptionFailure as exc:
            self.state.subscribed = False
            self.last_error = exc.reason
            LOGGER.warning(
                "Failed to set up listener for %s (%s): %s",
                self.name,
                self.channel.path,
                exc.reason,
            )
            return False

        self._stream = stream
        self.state.subscribed = True
        self.state.timed_out = False
        self.last_error = None
        LOGGER.info("Listener for %s set up (%s)", self.name, self.channel.path)
        return True

    async def resubscribe(self) -> bool:
        LOGGER.info("Resubscribing %s (%s)", self.name, self.channel.path)
        await self._close_stream()
        return await self.subscribe()

    def poll(self) -> PollResult:
        if self._stream is None:
            return PollResult.no_data()

        result = self._stream.poll()

        if result.status is PollStatus.NEW_VALUE:
            self.state.last_raw_value = result.value
        elif result.status is PollStatus.TIMED_OUT:
            if not self.state.timed_out:
                LOGGER.info("Stream for %s timed out", self.name)
            self.state.timed_out = True
        elif result.status is PollStatus.ERRORED:
            self.last_error = result.reason
            if self.channel.policy.log_on_error:
                LOGGER.warning("Stream error on %s: %s", self.name, result.reason)

        return result

    async def close(self) -> None:
        await self._close_stream()
        self.state.subscribed = False

    async def _close_stream(self) -> None:
        stream, self._stream = self._stream, None
        if stream is not None:
            await stream.close()
