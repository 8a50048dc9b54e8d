"""In-memory push channel.

Table changes are broadcast to every open subscription whose owner filter
matches, mirroring a row-change feed. Tests drive the awkward cases through
the hooks: ``emit`` bypasses the filter, ``hold``/``release`` reorder
delivery, and ``fail``/``break_stream`` simulate a dying connection.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from linkstash.domain.exceptions.domain_exceptions import ChannelError
from linkstash.infrastructure.messaging.channel_messages import (
    ChangeMessage,
    StatusMessage,
    SubscriptionStatus,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from linkstash.infrastructure.messaging.channel_messages import ChannelMessage

logger = logging.getLogger(__name__)

_OWNER_FILTER_PREFIX = "user_id=eq."


def parse_owner_filter(expression: str | None) -> str | None:
    """Extract the owner id from a ``user_id=eq.<owner>`` row filter."""
    if expression is None:
        return None
    if not expression.startswith(_OWNER_FILTER_PREFIX) or expression == _OWNER_FILTER_PREFIX:
        msg = f"Unsupported row filter: {expression!r}"
        raise ValueError(msg)
    return expression[len(_OWNER_FILTER_PREFIX) :]


class _Closed:
    pass


class _Failure:
    def __init__(self, exc: Exception) -> None:
        self.exc = exc


_CLOSED = _Closed()


class InMemoryChannelStream:
    """One subscription's message queue, consumed with ``async for``."""

    def __init__(self, topic: str, owner_id: str | None) -> None:
        self.topic = topic
        self.owner_id = owner_id
        self.closed = False
        self._queue: asyncio.Queue[ChannelMessage | _Closed | _Failure] = asyncio.Queue()

    def accepts(self, message: ChannelMessage) -> bool:
        if self.owner_id is None or not isinstance(message, ChangeMessage):
            return True
        row_owner = message.payload.get("user_id")
        return row_owner is None or row_owner == self.owner_id

    def put(self, message: ChannelMessage) -> None:
        if not self.closed:
            self._queue.put_nowait(message)

    def fail(self, exc: Exception) -> None:
        if not self.closed:
            self._queue.put_nowait(_Failure(exc))

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._queue.put_nowait(_CLOSED)

    async def __aiter__(self) -> AsyncIterator[ChannelMessage]:
        while True:
            item = await self._queue.get()
            if isinstance(item, _Closed):
                return
            if isinstance(item, _Failure):
                raise item.exc
            yield item


class InMemoryRealtimeChannel:
    """Local broadcast channel implementing ``RealtimeChannel``."""

    def __init__(self, *, auto_ack: bool = True) -> None:
        """Initialize the channel.

        Args:
            auto_ack: Acknowledge new subscriptions with ``ACTIVE`` right away.

        """
        self._auto_ack = auto_ack
        self._streams: list[InMemoryChannelStream] = []
        self._held: list[ChannelMessage] | None = None
        self._refusal: str | None = None
        self.subscribe_calls = 0
        self.unsubscribe_calls = 0

    @property
    def open_streams(self) -> list[InMemoryChannelStream]:
        return [s for s in self._streams if not s.closed]

    async def subscribe(
        self, topic: str, *, owner_filter: str | None = None
    ) -> InMemoryChannelStream:
        if self._refusal is not None:
            reason, self._refusal = self._refusal, None
            msg = f"Subscription to {topic} refused: {reason}"
            raise ChannelError(msg, details={"topic": topic})
        stream = InMemoryChannelStream(topic, parse_owner_filter(owner_filter))
        self._streams.append(stream)
        self.subscribe_calls += 1
        stream.put(StatusMessage(SubscriptionStatus.CONNECTING))
        if self._auto_ack:
            stream.put(StatusMessage(SubscriptionStatus.ACTIVE))
        logger.debug("memory_channel_subscribed", extra={"topic": topic})
        return stream

    async def unsubscribe(self, stream: InMemoryChannelStream) -> None:
        if stream in self._streams:
            self._streams.remove(stream)
            self.unsubscribe_calls += 1
        stream.close()

    def broadcast(self, message: ChangeMessage) -> None:
        """Deliver a table change to every subscription whose filter matches."""
        if self._held is not None:
            self._held.append(message)
            return
        for stream in self.open_streams:
            if stream.accepts(message):
                stream.put(message)

    def emit(self, topic: str, message: ChannelMessage) -> None:
        """Deliver ``message`` to the streams on ``topic`` without filtering."""
        for stream in self.open_streams:
            if stream.topic == topic:
                stream.put(message)

    def acknowledge(self, topic: str) -> None:
        self.emit(topic, StatusMessage(SubscriptionStatus.ACTIVE))

    def fail(self, topic: str, reason: str = "channel error") -> None:
        self.emit(topic, StatusMessage(SubscriptionStatus.FAILED, reason))

    def break_stream(self, topic: str, exc: Exception) -> None:
        """Make the streams on ``topic`` raise ``exc`` on their next read."""
        for stream in self.open_streams:
            if stream.topic == topic:
                stream.fail(exc)

    def end_stream(self, topic: str) -> None:
        for stream in self.open_streams:
            if stream.topic == topic:
                stream.close()

    def refuse_next_subscribe(self, reason: str = "unauthorized") -> None:
        self._refusal = reason

    def hold(self) -> None:
        """Buffer broadcasts until :meth:`release`."""
        if self._held is None:
            self._held = []

    def release(self, *, reverse: bool = False) -> None:
        """Deliver held broadcasts, optionally in reverse order."""
        held, self._held = self._held or [], None
        for message in reversed(held) if reverse else held:
            self.broadcast(message)
