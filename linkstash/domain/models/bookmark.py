"""Bookmark domain model.

A bookmark is one saved link in an owner's private collection. Records are
created and identified by the persistence backend; locally they are only ever
observed, never constructed from user input.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from linkstash.core.time_utils import ensure_aware


@dataclass(frozen=True)
class BookmarkRecord:
    """Immutable snapshot of one saved link."""

    id: str
    owner_id: str
    title: str
    url: str
    created_at: datetime

    def __post_init__(self) -> None:
        """Validate record data."""
        if not self.id:
            raise ValueError("id cannot be empty")
        if not self.owner_id:
            raise ValueError("owner_id cannot be empty")
        if not isinstance(self.created_at, datetime):
            raise TypeError("created_at must be a datetime")
        # Normalize so records from different sources always compare.
        object.__setattr__(self, "created_at", ensure_aware(self.created_at))

    def is_owned_by(self, owner_id: str) -> bool:
        return self.owner_id == owner_id

    def is_newer_than(self, other: BookmarkRecord) -> bool:
        return self.created_at > other.created_at
