"""Deletion workflow domain model."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from linkstash.domain.models.bookmark import BookmarkRecord


class DeletionState(str, Enum):
    """Per-record position in the confirm-then-delete workflow."""

    IDLE = "idle"
    CONFIRM_PENDING = "confirm_pending"
    DELETING = "deleting"
    REMOVED = "removed"


@dataclass(frozen=True)
class PendingDeletion:
    """Snapshot of the record awaiting user confirmation.

    Holds the display fields so a confirmation prompt can still render them
    even if the record changes position in the view.
    """

    record_id: str
    title: str
    url: str

    @classmethod
    def from_record(cls, record: BookmarkRecord) -> PendingDeletion:
        return cls(record_id=record.id, title=record.title, url=record.url)
