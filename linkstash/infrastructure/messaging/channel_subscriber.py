"""Push-channel subscription lifecycle.

``ChannelSubscriber`` owns at most one subscription per owner topic. It reads
the channel stream in a background task, validates each change payload,
drops events that belong to other owners, and forwards the rest to the
insert/delete callbacks. Subscription status is folded into a
``ConnectionState`` reported through ``on_state_change``.

There is no automatic reconnect: after ``error`` the caller decides when to
start again, and must re-run the initial fetch because events published
during the gap are not replayed.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from linkstash.core.async_utils import maybe_await
from linkstash.core.time_utils import utc_now
from linkstash.domain.events.bookmark_events import ConnectionStateChanged
from linkstash.domain.models.connection import ConnectionState
from linkstash.infrastructure.messaging.channel_messages import (
    BookmarkRowPayload,
    ChangeEventKind,
    ChangeMessage,
    DeletedRowPayload,
    StatusMessage,
    SubscriptionStatus,
)
from linkstash.observability.metrics import record_channel_event, record_connection_transition

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from linkstash.domain.models.bookmark import BookmarkRecord
    from linkstash.infrastructure.messaging.event_bus import EventBus
    from linkstash.protocols import ChannelStream, RealtimeChannel

    OnInsert = Callable[[BookmarkRecord], Any]
    OnDelete = Callable[[str], Any]
    OnStateChange = Callable[[ConnectionState], Any]

logger = logging.getLogger(__name__)

DEFAULT_TOPIC_PREFIX = "bookmarks"


def owner_filter_for(owner_id: str) -> str:
    """Row filter scoping a subscription to one owner on the server side."""
    return f"user_id=eq.{owner_id}"


_STATUS_TO_STATE: dict[SubscriptionStatus, ConnectionState] = {
    SubscriptionStatus.ACTIVE: ConnectionState.LIVE,
    SubscriptionStatus.FAILED: ConnectionState.ERROR,
    SubscriptionStatus.CONNECTING: ConnectionState.CONNECTING,
    SubscriptionStatus.CLOSED: ConnectionState.CONNECTING,
    SubscriptionStatus.TIMED_OUT: ConnectionState.CONNECTING,
}


@dataclass(eq=False)
class SubscriptionHandle:
    """Caller-facing token for one running subscription."""

    owner_id: str
    topic: str
    state: ConnectionState = ConnectionState.CONNECTING
    started_at: datetime = field(default_factory=utc_now)
    _task: asyncio.Task[None] | None = field(default=None, repr=False)
    _acquired: asyncio.Event = field(default_factory=asyncio.Event, repr=False)
    _stopped: bool = field(default=False, repr=False)

    @property
    def stopped(self) -> bool:
        return self._stopped

    @property
    def is_live(self) -> bool:
        return not self._stopped and self.state is ConnectionState.LIVE


class ChannelSubscriber:
    """Manage push-channel subscriptions and translate events into callbacks.

    Example:
        ```python
        subscriber = ChannelSubscriber(channel)
        handle = await subscriber.start(
            owner_id,
            on_insert=store.apply_insert,
            on_delete=store.apply_delete,
            on_state_change=render_badge,
        )
        ...
        await subscriber.stop(handle)
        ```

    """

    def __init__(
        self,
        channel: RealtimeChannel,
        *,
        topic_prefix: str = DEFAULT_TOPIC_PREFIX,
        event_bus: EventBus | None = None,
    ) -> None:
        self._channel = channel
        self._topic_prefix = topic_prefix
        self._event_bus = event_bus
        self._active: dict[str, SubscriptionHandle] = {}

    def topic_for(self, owner_id: str) -> str:
        """Deterministic per-owner topic key, so re-subscribing targets the same channel."""
        return f"{self._topic_prefix}:{owner_id}"

    def active_handle(self, owner_id: str) -> SubscriptionHandle | None:
        return self._active.get(self.topic_for(owner_id))

    async def start(
        self,
        owner_id: str,
        on_insert: OnInsert,
        on_delete: OnDelete,
        on_state_change: OnStateChange | None = None,
    ) -> SubscriptionHandle:
        """Open the owner's subscription and begin delivering events.

        A previous subscription on the same topic is stopped first, so there
        is never more than one reader per owner.

        Returns once the channel subscription is held (or has failed), so
        nothing published after this call is missed.

        Returns:
            Handle for the subscription; pass it to :meth:`stop`.

        """
        if not owner_id:
            msg = "owner_id cannot be empty"
            raise ValueError(msg)

        topic = self.topic_for(owner_id)
        previous = self._active.get(topic)
        if previous is not None:
            logger.info("channel_resubscribe", extra={"topic": topic})
            await self.stop(previous)

        handle = SubscriptionHandle(owner_id=owner_id, topic=topic)
        self._active[topic] = handle
        record_connection_transition(None, handle.state.value)
        handle._task = asyncio.create_task(
            self._run(handle, on_insert, on_delete, on_state_change),
            name=f"channel-subscriber:{topic}",
        )
        try:
            await handle._acquired.wait()
        except asyncio.CancelledError:
            await self.stop(handle)
            raise
        logger.info("channel_subscription_started", extra={"topic": topic})
        return handle

    async def stop(self, handle: SubscriptionHandle) -> None:
        """Stop a subscription and release its channel resource.

        Idempotent, and safe to call before the subscription was acknowledged
        or even acquired, and from inside the subscription's own callbacks.
        """
        if handle.stopped:
            return
        handle._stopped = True
        handle._acquired.set()
        record_connection_transition(handle.state.value, None)
        if self._active.get(handle.topic) is handle:
            del self._active[handle.topic]

        task = handle._task
        if task is asyncio.current_task():
            # Called from one of this subscription's callbacks; the reader loop
            # releases the stream as soon as the callback returns.
            logger.info("channel_subscription_stop_deferred", extra={"topic": handle.topic})
            return
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        logger.info("channel_subscription_stopped", extra={"topic": handle.topic})

    async def stop_all(self) -> None:
        for handle in list(self._active.values()):
            await self.stop(handle)

    @asynccontextmanager
    async def _subscription(self, topic: str, owner_id: str) -> AsyncIterator[ChannelStream]:
        stream = await self._channel.subscribe(topic, owner_filter=owner_filter_for(owner_id))
        try:
            yield stream
        finally:
            await self._channel.unsubscribe(stream)
            logger.debug("channel_unsubscribed", extra={"topic": topic})

    async def _run(
        self,
        handle: SubscriptionHandle,
        on_insert: OnInsert,
        on_delete: OnDelete,
        on_state_change: OnStateChange | None,
    ) -> None:
        try:
            async with self._subscription(handle.topic, handle.owner_id) as stream:
                handle._acquired.set()
                async for message in stream:
                    if isinstance(message, StatusMessage):
                        await self._handle_status(handle, message, on_state_change)
                    elif isinstance(message, ChangeMessage):
                        await self._handle_change(handle, message, on_insert, on_delete)
                    else:
                        logger.warning(
                            "channel_unknown_message",
                            extra={"topic": handle.topic, "type": type(message).__name__},
                        )
                    if handle.stopped:
                        break
            if handle.stopped:
                return
            logger.info("channel_stream_ended", extra={"topic": handle.topic})
            await self._set_state(handle, ConnectionState.CONNECTING, on_state_change)
        except Exception as exc:
            logger.exception(
                "channel_subscription_failed",
                extra={"topic": handle.topic, "error": str(exc)},
            )
            await self._set_state(handle, ConnectionState.ERROR, on_state_change)
        finally:
            handle._acquired.set()

    async def _handle_status(
        self,
        handle: SubscriptionHandle,
        message: StatusMessage,
        on_state_change: OnStateChange | None,
    ) -> None:
        new_state = _STATUS_TO_STATE[message.status]
        if new_state is ConnectionState.ERROR:
            logger.warning(
                "channel_reported_failure",
                extra={"topic": handle.topic, "reason": message.reason},
            )
        await self._set_state(handle, new_state, on_state_change)

    async def _set_state(
        self,
        handle: SubscriptionHandle,
        new_state: ConnectionState,
        on_state_change: OnStateChange | None,
    ) -> None:
        old_state = handle.state
        if old_state is new_state or handle.stopped:
            return
        handle.state = new_state
        record_connection_transition(old_state.value, new_state.value)
        logger.info(
            "channel_state_changed",
            extra={"topic": handle.topic, "old": old_state.value, "new": new_state.value},
        )
        if on_state_change is not None:
            await self._invoke(handle, "on_state_change", on_state_change, new_state)
        if self._event_bus is not None:
            await self._event_bus.publish(
                ConnectionStateChanged(
                    occurred_at=utc_now(),
                    aggregate_id=handle.owner_id,
                    old_state=old_state,
                    new_state=new_state,
                )
            )

    async def _handle_change(
        self,
        handle: SubscriptionHandle,
        message: ChangeMessage,
        on_insert: OnInsert,
        on_delete: OnDelete,
    ) -> None:
        kind = message.kind.value
        record: BookmarkRecord | None = None
        try:
            if message.kind is ChangeEventKind.INSERT:
                record = BookmarkRowPayload.model_validate(message.payload).to_record()
                record_id, owner_id = record.id, record.owner_id
            else:
                deleted = DeletedRowPayload.model_validate(message.payload)
                record_id, owner_id = deleted.id, deleted.owner_id
        except (ValidationError, ValueError, TypeError) as exc:
            record_channel_event(kind, "malformed")
            logger.warning(
                "channel_payload_malformed",
                extra={"topic": handle.topic, "kind": kind, "error": str(exc)},
            )
            return

        # Delete events often carry only the primary key; those pass through.
        if owner_id is not None and owner_id != handle.owner_id:
            record_channel_event(kind, "foreign_owner")
            logger.debug("channel_event_foreign_owner", extra={"topic": handle.topic, "kind": kind})
            return

        record_channel_event(kind, "delivered")
        if record is not None:
            await self._invoke(handle, "on_insert", on_insert, record)
        else:
            await self._invoke(handle, "on_delete", on_delete, record_id)

    async def _invoke(
        self, handle: SubscriptionHandle, name: str, callback: Callable[..., Any], arg: Any
    ) -> None:
        try:
            await maybe_await(callback(arg))
        except Exception:
            logger.exception(
                "channel_callback_failed", extra={"topic": handle.topic, "callback": name}
            )
