"""In-memory bookmark repository."""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from typing import TYPE_CHECKING

from linkstash.core.time_utils import utc_now
from linkstash.domain.exceptions.domain_exceptions import PersistenceError
from linkstash.domain.models.bookmark import BookmarkRecord
from linkstash.infrastructure.messaging.channel_messages import ChangeEventKind, ChangeMessage

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from linkstash.adapters.memory.channel import InMemoryRealtimeChannel

logger = logging.getLogger(__name__)


class InMemoryBookmarkRepository:
    """Dict-backed ``BookmarkRepository`` that echoes writes to a channel.

    ``fail_next(operation)`` makes the next call of that operation raise
    ``PersistenceError``; ``calls`` records every call for assertions.
    """

    def __init__(
        self,
        channel: InMemoryRealtimeChannel | None = None,
        *,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ) -> None:
        self._channel = channel
        self._clock = clock
        self._id_factory = id_factory
        self._rows: dict[str, BookmarkRecord] = {}
        self._failures: dict[str, list[str]] = defaultdict(list)
        self.calls: list[tuple[str, tuple[str, ...]]] = []

    def fail_next(self, operation: str, message: str = "backend unavailable") -> None:
        if operation not in {"create", "list", "delete"}:
            msg = f"Unknown operation: {operation}"
            raise ValueError(msg)
        self._failures[operation].append(message)

    def add(self, record: BookmarkRecord) -> None:
        """Store ``record`` directly, without echoing it."""
        self._rows[record.id] = record

    def rows(self) -> list[BookmarkRecord]:
        return list(self._rows.values())

    async def create(self, owner_id: str, title: str, url: str) -> BookmarkRecord:
        self.calls.append(("create", (owner_id, title, url)))
        self._maybe_fail("create")
        record = BookmarkRecord(
            id=self._id_factory(),
            owner_id=owner_id,
            title=title,
            url=url,
            created_at=self._clock(),
        )
        self._rows[record.id] = record
        logger.debug("memory_bookmark_created", extra={"record_id": record.id})
        self._echo(
            ChangeMessage(
                ChangeEventKind.INSERT,
                {
                    "id": record.id,
                    "user_id": record.owner_id,
                    "title": record.title,
                    "url": record.url,
                    "created_at": record.created_at.isoformat(),
                },
            )
        )
        return record

    async def list(self, owner_id: str) -> list[BookmarkRecord]:
        self.calls.append(("list", (owner_id,)))
        self._maybe_fail("list")
        owned = [r for r in self._rows.values() if r.is_owned_by(owner_id)]
        return sorted(owned, key=lambda r: r.created_at, reverse=True)

    async def delete(self, record_id: str, owner_id: str) -> None:
        self.calls.append(("delete", (record_id, owner_id)))
        self._maybe_fail("delete")
        record = self._rows.get(record_id)
        # A filtered delete that matches nothing is not an error.
        if record is None or not record.is_owned_by(owner_id):
            logger.debug("memory_bookmark_delete_no_match", extra={"record_id": record_id})
            return
        del self._rows[record_id]
        self._echo(ChangeMessage(ChangeEventKind.DELETE, {"id": record_id, "user_id": owner_id}))

    def _maybe_fail(self, operation: str) -> None:
        pending = self._failures.get(operation)
        if pending:
            msg = pending.pop(0)
            raise PersistenceError(msg, operation=operation)

    def _echo(self, message: ChangeMessage) -> None:
        if self._channel is not None:
            self._channel.broadcast(message)
