"""Synchronized collection store domain service.

Holds the local, ordered view of one owner's bookmarks and reconciles it with
change events that may arrive duplicated or out of order. The view is sorted
newest first by ``created_at`` and unique by ``id``; a deleted id is
tombstoned for a bounded time so a late insert for it cannot resurrect it.

Every mutation is synchronous: there is no suspension point inside one, so the
channel reader and local workflows can call in any interleaving on the event
loop without observing a half-applied change.
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from linkstash.observability.metrics import record_store_mutation

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from linkstash.domain.models.bookmark import BookmarkRecord

logger = logging.getLogger(__name__)

DEFAULT_TOMBSTONE_TTL_SECONDS = 30.0
DEFAULT_MAX_TOMBSTONES = 1024


class ChangeKind(str, Enum):
    SEEDED = "seeded"
    INSERTED = "inserted"
    REMOVED = "removed"


@dataclass(frozen=True)
class CollectionChange:
    """Notification sent to store listeners after a mutation took effect."""

    kind: ChangeKind
    record_id: str | None = None


class SyncedCollectionStore:
    """Authoritative local view of one owner's bookmark collection.

    Example:
        ```python
        store = SyncedCollectionStore()
        store.seed(await repository.list(owner_id))

        store.apply_insert(record)   # ordered insert, idempotent
        store.apply_delete(record.id)
        store.apply_insert(record)   # suppressed: id is tombstoned
        ```

    """

    def __init__(
        self,
        *,
        tombstone_ttl_seconds: float = DEFAULT_TOMBSTONE_TTL_SECONDS,
        max_tombstones: int = DEFAULT_MAX_TOMBSTONES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize an empty store.

        Args:
            tombstone_ttl_seconds: How long a deleted id suppresses late inserts.
            max_tombstones: Upper bound on remembered ids; the oldest is evicted first.
            clock: Monotonic clock in seconds, injectable for tests.

        """
        if tombstone_ttl_seconds <= 0:
            msg = "tombstone_ttl_seconds must be positive"
            raise ValueError(msg)
        if max_tombstones <= 0:
            msg = "max_tombstones must be positive"
            raise ValueError(msg)
        self._tombstone_ttl = tombstone_ttl_seconds
        self._max_tombstones = max_tombstones
        self._clock = clock
        self._records: list[BookmarkRecord] = []
        self._index: dict[str, BookmarkRecord] = {}
        # id -> expiry on self._clock, oldest first
        self._tombstones: OrderedDict[str, float] = OrderedDict()
        self._listeners: list[Callable[[CollectionChange], None]] = []

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def seed(self, records: Iterable[BookmarkRecord]) -> None:
        """Replace the view wholesale with the result of a full fetch.

        Records are ordered newest first (stable for equal timestamps), the
        first occurrence of a duplicated id wins, and ids deleted within the
        tombstone window stay out.
        """
        self._purge_expired_tombstones()
        unique: dict[str, BookmarkRecord] = {}
        skipped = 0
        for record in records:
            if record.id in unique or record.id in self._tombstones:
                skipped += 1
                continue
            unique[record.id] = record

        self._records = sorted(unique.values(), key=lambda r: r.created_at, reverse=True)
        self._index = unique
        record_store_mutation("seed", "applied")
        logger.debug(
            "collection_seeded",
            extra={"count": len(self._records), "skipped": skipped},
        )
        self._notify(CollectionChange(ChangeKind.SEEDED))

    def apply_insert(self, record: BookmarkRecord) -> bool:
        """Insert ``record`` at the position its ``created_at`` dictates.

        Returns:
            True if the view changed; False for a duplicate id or a tombstoned id.

        """
        if record.id in self._index:
            record_store_mutation("insert", "duplicate")
            logger.debug("collection_insert_duplicate", extra={"record_id": record.id})
            return False

        if self.is_tombstoned(record.id):
            record_store_mutation("insert", "suppressed")
            logger.info("collection_insert_suppressed", extra={"record_id": record.id})
            return False

        position = next(
            (i for i, existing in enumerate(self._records) if record.is_newer_than(existing)),
            len(self._records),
        )
        self._records.insert(position, record)
        self._index[record.id] = record
        record_store_mutation("insert", "applied")
        logger.debug(
            "collection_insert_applied",
            extra={"record_id": record.id, "position": position, "size": len(self._records)},
        )
        self._notify(CollectionChange(ChangeKind.INSERTED, record.id))
        return True

    def apply_delete(self, record_id: str) -> bool:
        """Remove ``record_id`` if present and tombstone it either way.

        Returns:
            True if a record was removed from the view.

        """
        self._add_tombstone(record_id)

        record = self._index.pop(record_id, None)
        if record is None:
            record_store_mutation("delete", "absent")
            logger.debug("collection_delete_absent", extra={"record_id": record_id})
            return False

        self._records = [r for r in self._records if r.id != record_id]
        record_store_mutation("delete", "applied")
        logger.debug(
            "collection_delete_applied",
            extra={"record_id": record_id, "size": len(self._records)},
        )
        self._notify(CollectionChange(ChangeKind.REMOVED, record_id))
        return True

    # ------------------------------------------------------------------
    # Read-only accessors
    # ------------------------------------------------------------------

    def size(self) -> int:
        return len(self._records)

    def snapshot(self) -> tuple[BookmarkRecord, ...]:
        """Return the current view, newest first."""
        return tuple(self._records)

    def get(self, record_id: str) -> BookmarkRecord | None:
        return self._index.get(record_id)

    def contains(self, record_id: str) -> bool:
        return record_id in self._index

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: Callable[[CollectionChange], None]) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[CollectionChange], None]) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            logger.warning("collection_listener_not_found")

    def _notify(self, change: CollectionChange) -> None:
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception:
                logger.exception(
                    "collection_listener_failed",
                    extra={"change": change.kind.value, "record_id": change.record_id},
                )

    # ------------------------------------------------------------------
    # Tombstones
    # ------------------------------------------------------------------

    def _add_tombstone(self, record_id: str) -> None:
        self._tombstones[record_id] = self._clock() + self._tombstone_ttl
        self._tombstones.move_to_end(record_id)
        while len(self._tombstones) > self._max_tombstones:
            evicted, _ = self._tombstones.popitem(last=False)
            logger.debug("collection_tombstone_evicted", extra={"record_id": evicted})

    def is_tombstoned(self, record_id: str) -> bool:
        """Whether ``record_id`` was deleted within the tombstone window."""
        expires_at = self._tombstones.get(record_id)
        if expires_at is None:
            return False
        if expires_at <= self._clock():
            del self._tombstones[record_id]
            return False
        return True

    def _purge_expired_tombstones(self) -> None:
        now = self._clock()
        # Insertion order equals expiry order because the TTL is fixed.
        while self._tombstones:
            record_id, expires_at = next(iter(self._tombstones.items()))
            if expires_at > now:
                break
            del self._tombstones[record_id]
