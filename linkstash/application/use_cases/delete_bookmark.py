"""Use case for the confirm-then-delete workflow.

Each record moves ``IDLE -> CONFIRM_PENDING -> DELETING -> REMOVED`` and can
fall back from ``CONFIRM_PENDING`` to ``IDLE`` on cancel. Removal may reach
the store twice, once from the direct delete and once from the channel echo;
the store's idempotent delete makes whichever arrives second a no-op.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from linkstash.application.dto.bookmark_dto import DeletionOutcome, DeletionResult
from linkstash.core.logging_utils import generate_correlation_id
from linkstash.core.time_utils import utc_now
from linkstash.domain.events.bookmark_events import BookmarkDeletionFailed, BookmarkRemoved
from linkstash.domain.exceptions.domain_exceptions import (
    InvalidStateTransitionError,
    PersistenceError,
    ResourceNotFoundError,
)
from linkstash.domain.models.deletion import DeletionState, PendingDeletion
from linkstash.domain.services.collection_store import ChangeKind, CollectionChange
from linkstash.observability.metrics import record_deletion, record_persistence_call

if TYPE_CHECKING:
    from linkstash.domain.services.collection_store import SyncedCollectionStore
    from linkstash.infrastructure.messaging.event_bus import EventBus
    from linkstash.protocols import BookmarkRepository

logger = logging.getLogger(__name__)


class DeletionWorkflow:
    """Confirmation slot and deleting flags for one owner's collection.

    At most one confirmation is pending at a time; a new request replaces it.

    Example:
        ```python
        workflow = DeletionWorkflow(store, repository, owner_id="user-1")
        workflow.request_delete(record.id)
        result = await workflow.confirm_delete()
        ```

    """

    def __init__(
        self,
        store: SyncedCollectionStore,
        repository: BookmarkRepository,
        owner_id: str,
        *,
        event_bus: EventBus | None = None,
    ) -> None:
        if not owner_id:
            msg = "owner_id cannot be empty"
            raise ValueError(msg)
        self._store = store
        self._repository = repository
        self._owner_id = owner_id
        self._event_bus = event_bus
        self._pending: PendingDeletion | None = None
        self._deleting: set[str] = set()
        # Removal is terminal, so this outlives the store's tombstone window.
        self._removed: set[str] = set()
        self._store.add_listener(self._on_store_change)

    @property
    def pending(self) -> PendingDeletion | None:
        return self._pending

    def is_deleting(self, record_id: str) -> bool:
        return record_id in self._deleting

    def state_of(self, record_id: str) -> DeletionState:
        """Current workflow state of ``record_id``."""
        if record_id in self._deleting:
            return DeletionState.DELETING
        if self._pending is not None and self._pending.record_id == record_id:
            return DeletionState.CONFIRM_PENDING
        if record_id in self._removed and not self._store.contains(record_id):
            return DeletionState.REMOVED
        return DeletionState.IDLE

    def request_delete(self, record_id: str) -> PendingDeletion:
        """Ask for confirmation before deleting ``record_id``.

        Raises:
            ResourceNotFoundError: The record is not in the collection.
            InvalidStateTransitionError: The record is already being deleted.

        """
        if record_id in self._deleting:
            msg = f"Bookmark {record_id} is already being deleted"
            raise InvalidStateTransitionError(
                msg, details={"record_id": record_id, "state": DeletionState.DELETING.value}
            )
        record = self._store.get(record_id)
        if record is None:
            msg = f"Bookmark {record_id} not found"
            raise ResourceNotFoundError(msg, details={"record_id": record_id})

        previous = self._pending
        self._pending = PendingDeletion.from_record(record)
        logger.debug(
            "deletion_requested",
            extra={
                "record_id": record_id,
                "superseded": previous.record_id if previous is not None else None,
            },
        )
        return self._pending

    def cancel_delete(self) -> None:
        if self._pending is not None:
            logger.debug("deletion_cancelled", extra={"record_id": self._pending.record_id})
        self._pending = None

    async def confirm_delete(self) -> DeletionResult:
        """Delete the pending record on the backend and drop it from the view.

        Failures are logged and published as ``BookmarkDeletionFailed``; the
        record stays in place and nothing is raised.
        """
        pending = self._pending
        if pending is None:
            return DeletionResult(outcome=DeletionOutcome.NOTHING_PENDING)
        self._pending = None

        record_id = pending.record_id
        correlation_id = generate_correlation_id()
        self._deleting.add(record_id)
        logger.info(
            "deletion_started",
            extra={
                "record_id": record_id,
                "owner_id": self._owner_id,
                "correlation_id": correlation_id,
            },
        )

        started = time.perf_counter()
        failure: PersistenceError | None = None
        try:
            await self._repository.delete(record_id, self._owner_id)
        except PersistenceError as exc:
            failure = exc
        finally:
            self._deleting.discard(record_id)
            record_persistence_call("delete", time.perf_counter() - started)

        if failure is not None:
            return await self._report_failure(record_id, correlation_id, failure)

        removed_here = self._store.apply_delete(record_id)
        record_deletion("removed")
        logger.info(
            "deletion_completed",
            extra={
                "record_id": record_id,
                "correlation_id": correlation_id,
                "echo_first": not removed_here,
            },
        )

        if removed_here and self._event_bus is not None:
            await self._event_bus.publish(
                BookmarkRemoved(occurred_at=utc_now(), aggregate_id=record_id, record_id=record_id)
            )
        return DeletionResult(outcome=DeletionOutcome.REMOVED, record_id=record_id)

    async def _report_failure(
        self, record_id: str, correlation_id: str, exc: PersistenceError
    ) -> DeletionResult:
        record_deletion("error")
        logger.warning(
            "deletion_failed",
            extra={
                "record_id": record_id,
                "correlation_id": correlation_id,
                "error": exc.message,
            },
        )
        if self._event_bus is not None:
            await self._event_bus.publish(
                BookmarkDeletionFailed(
                    occurred_at=utc_now(),
                    aggregate_id=record_id,
                    record_id=record_id,
                    error_message=exc.message,
                )
            )
        return DeletionResult(outcome=DeletionOutcome.FAILED, record_id=record_id, error=exc.message)

    def dispose(self) -> None:
        """Detach from the store and drop any pending confirmation."""
        self._pending = None
        self._store.remove_listener(self._on_store_change)

    def _on_store_change(self, change: CollectionChange) -> None:
        if change.kind is ChangeKind.REMOVED and change.record_id is not None:
            self._deleting.discard(change.record_id)
            self._removed.add(change.record_id)
        elif change.kind is ChangeKind.SEEDED:
            self._deleting = {rid for rid in self._deleting if self._store.contains(rid)}

        pending = self._pending
        if pending is not None and not self._store.contains(pending.record_id):
            logger.debug("deletion_pending_target_gone", extra={"record_id": pending.record_id})
            self._pending = None
