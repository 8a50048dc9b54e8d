"""Use case wiring one owner's live collection together.

``CollectionSession`` opens the push-channel subscription, seeds the store
from a full fetch, and hands out the submission and deletion workflows bound
to the current owner. It can follow an identity provider so the collection
is reopened on sign-in changes and closed on sign-out.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, TypeVar

from linkstash.application.use_cases.delete_bookmark import DeletionWorkflow
from linkstash.application.use_cases.submit_bookmark import (
    DEFAULT_SUCCESS_FLASH_SECONDS,
    SubmissionController,
)
from linkstash.core.time_utils import utc_now
from linkstash.domain.events.bookmark_events import BookmarkInserted, BookmarkRemoved
from linkstash.domain.exceptions.domain_exceptions import PersistenceError
from linkstash.domain.models.connection import ConnectionState
from linkstash.domain.services.collection_store import (
    DEFAULT_MAX_TOMBSTONES,
    DEFAULT_TOMBSTONE_TTL_SECONDS,
    SyncedCollectionStore,
)
from linkstash.observability.metrics import record_persistence_call

if TYPE_CHECKING:
    from collections.abc import Callable

    from linkstash.domain.models.bookmark import BookmarkRecord
    from linkstash.infrastructure.messaging.channel_subscriber import (
        ChannelSubscriber,
        SubscriptionHandle,
    )
    from linkstash.infrastructure.messaging.event_bus import EventBus
    from linkstash.protocols import BookmarkRepository, IdentityProvider

logger = logging.getLogger(__name__)

_T = TypeVar("_T")


class CollectionSession:
    """Live, reconciled view of the signed-in owner's bookmarks.

    Example:
        ```python
        session = CollectionSession(repository, ChannelSubscriber(channel))
        await session.open("user-1")
        await session.submission.submit("Article", "example.com")
        ...
        await session.close()
        ```

    """

    def __init__(
        self,
        repository: BookmarkRepository,
        subscriber: ChannelSubscriber,
        *,
        event_bus: EventBus | None = None,
        tombstone_ttl_seconds: float = DEFAULT_TOMBSTONE_TTL_SECONDS,
        max_tombstones: int = DEFAULT_MAX_TOMBSTONES,
        success_flash_seconds: float = DEFAULT_SUCCESS_FLASH_SECONDS,
    ) -> None:
        self._repository = repository
        self._subscriber = subscriber
        self._event_bus = event_bus
        self._tombstone_ttl_seconds = tombstone_ttl_seconds
        self._max_tombstones = max_tombstones
        self._success_flash_seconds = success_flash_seconds

        self._owner_id: str | None = None
        self._store: SyncedCollectionStore | None = None
        self._deletion: DeletionWorkflow | None = None
        self._submission: SubmissionController | None = None
        self._handle: SubscriptionHandle | None = None
        self._connection_state = ConnectionState.CONNECTING
        self._loading = False
        # Inserts delivered while the initial fetch is in flight; replayed after seeding.
        self._buffered: list[BookmarkRecord] = []
        self._lock = asyncio.Lock()

        self._identity_unsubscribe: Callable[[], None] | None = None
        self._identity_task: asyncio.Task[None] | None = None

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def owner_id(self) -> str | None:
        return self._owner_id

    @property
    def is_open(self) -> bool:
        return self._handle is not None

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def connection_state(self) -> ConnectionState:
        return self._connection_state

    @property
    def records(self) -> tuple[BookmarkRecord, ...]:
        if self._store is None:
            return ()
        return self._store.snapshot()

    @property
    def count(self) -> int:
        return self._store.size() if self._store is not None else 0

    @property
    def store(self) -> SyncedCollectionStore:
        return self._require(self._store)

    @property
    def submission(self) -> SubmissionController:
        return self._require(self._submission)

    @property
    def deletion(self) -> DeletionWorkflow:
        return self._require(self._deletion)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self, owner_id: str) -> None:
        """Subscribe for ``owner_id`` and seed the view from a full fetch.

        The subscription starts before the fetch so inserts published while
        the fetch is in flight are not lost. A failed fetch leaves the view
        empty; the live subscription still delivers new events.
        """
        if not owner_id:
            msg = "owner_id cannot be empty"
            raise ValueError(msg)
        async with self._lock:
            await self._close_locked()
            self._bind_owner(owner_id)
            await self._open_locked(owner_id)

    async def close(self) -> None:
        """Stop the subscription and drop any pending confirmation."""
        async with self._lock:
            await self._close_locked()

    async def reconnect(self) -> None:
        """Resubscribe and re-run the initial fetch for the current owner.

        Events published while the subscription was down are not replayed by
        the channel, so the full fetch is what brings the view up to date.
        """
        owner_id = self._owner_id
        if owner_id is None:
            msg = "Cannot reconnect a session that was never opened"
            raise RuntimeError(msg)
        logger.info("collection_reconnect", extra={"owner_id": owner_id})
        async with self._lock:
            await self._close_locked()
            await self._open_locked(owner_id)

    async def follow_identity(self, identity: IdentityProvider) -> None:
        """Keep the session bound to whoever ``identity`` reports as signed in."""
        self._unfollow_identity()
        self._identity_unsubscribe = identity.on_change(self._on_identity_change)
        await self._switch_owner(identity.current_owner_id())

    async def shutdown(self) -> None:
        """Stop following identity changes and close the session."""
        self._unfollow_identity()
        task = self._identity_task
        if task is not None and not task.done():
            await task
        await self.close()
        self._unbind_owner()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _bind_owner(self, owner_id: str) -> None:
        if owner_id == self._owner_id and self._store is not None:
            return
        self._unbind_owner()

        self._owner_id = owner_id
        self._store = SyncedCollectionStore(
            tombstone_ttl_seconds=self._tombstone_ttl_seconds,
            max_tombstones=self._max_tombstones,
        )
        self._deletion = DeletionWorkflow(
            self._store, self._repository, owner_id, event_bus=self._event_bus
        )
        self._submission = SubmissionController(
            self._repository,
            owner_id,
            event_bus=self._event_bus,
            success_flash_seconds=self._success_flash_seconds,
        )
        logger.debug("collection_owner_bound", extra={"owner_id": owner_id})

    async def _open_locked(self, owner_id: str) -> None:
        store = self._require(self._store)
        self._loading = True
        self._buffered = []
        self._connection_state = ConnectionState.CONNECTING
        try:
            self._handle = await self._subscriber.start(
                owner_id,
                on_insert=self._on_remote_insert,
                on_delete=self._on_remote_delete,
                on_state_change=self._on_state_change,
            )

            started = time.perf_counter()
            try:
                records = await self._repository.list(owner_id)
            except PersistenceError as exc:
                records = []
                logger.warning(
                    "collection_initial_fetch_failed",
                    extra={"owner_id": owner_id, "error": exc.message},
                )
            finally:
                record_persistence_call("list", time.perf_counter() - started)

            store.seed(records)
            for record in self._buffered:
                store.apply_insert(record)
        finally:
            self._buffered = []
            self._loading = False

        logger.info(
            "collection_opened",
            extra={"owner_id": owner_id, "count": store.size()},
        )

    async def _close_locked(self) -> None:
        handle = self._handle
        if handle is None:
            return
        self._handle = None
        await self._subscriber.stop(handle)
        if self._deletion is not None:
            self._deletion.cancel_delete()
        self._connection_state = ConnectionState.CONNECTING
        logger.info("collection_closed", extra={"owner_id": handle.owner_id})

    async def _on_remote_insert(self, record: BookmarkRecord) -> None:
        if self._loading:
            self._buffered.append(record)
        if self._store is None or not self._store.apply_insert(record):
            return
        if self._event_bus is not None:
            await self._event_bus.publish(
                BookmarkInserted(occurred_at=utc_now(), aggregate_id=record.id, record_id=record.id)
            )

    async def _on_remote_delete(self, record_id: str) -> None:
        if self._store is None or not self._store.apply_delete(record_id):
            return
        if self._event_bus is not None:
            await self._event_bus.publish(
                BookmarkRemoved(occurred_at=utc_now(), aggregate_id=record_id, record_id=record_id)
            )

    def _on_state_change(self, state: ConnectionState) -> None:
        self._connection_state = state

    def _on_identity_change(self, owner_id: str | None) -> None:
        previous = self._identity_task
        self._identity_task = asyncio.get_running_loop().create_task(
            self._follow_change(previous, owner_id)
        )

    async def _follow_change(
        self, previous: asyncio.Task[None] | None, owner_id: str | None
    ) -> None:
        # Identity changes are applied in the order they were reported.
        if previous is not None and not previous.done():
            await previous
        try:
            await self._switch_owner(owner_id)
        except Exception as exc:
            logger.exception(
                "collection_identity_switch_failed",
                extra={"owner_id": owner_id, "error": str(exc)},
            )

    async def _switch_owner(self, owner_id: str | None) -> None:
        if owner_id is None:
            logger.info("collection_signed_out", extra={"owner_id": self._owner_id})
            await self.close()
            self._unbind_owner()
            return
        if owner_id == self._owner_id and self.is_open:
            return
        await self.open(owner_id)

    def _unbind_owner(self) -> None:
        if self._submission is not None:
            self._submission.dispose()
        if self._deletion is not None:
            self._deletion.dispose()
        self._owner_id = None
        self._store = None
        self._deletion = None
        self._submission = None

    def _unfollow_identity(self) -> None:
        if self._identity_unsubscribe is not None:
            self._identity_unsubscribe()
            self._identity_unsubscribe = None

    @staticmethod
    def _require(value: _T | None) -> _T:
        if value is None:
            msg = "CollectionSession is not open"
            raise RuntimeError(msg)
        return value
