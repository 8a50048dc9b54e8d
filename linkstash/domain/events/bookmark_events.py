"""Domain events for bookmark collection changes.

Events represent things that have happened in the domain and can be
used to trigger side effects or notify other parts of the system.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from linkstash.domain.models.connection import ConnectionState


@dataclass(frozen=True)
class DomainEvent:
    """Base class for all domain events."""

    occurred_at: datetime
    aggregate_id: str | None = None

    def __post_init__(self) -> None:
        """Validate event data after initialization."""
        if not isinstance(self.occurred_at, datetime):
            raise TypeError("occurred_at must be a datetime")


@dataclass(frozen=True)
class BookmarkSubmitted(DomainEvent):
    """Event raised when the backend accepted a new bookmark.

    The bookmark is not yet visible locally; it appears once the channel
    echoes the insert.
    """

    owner_id: str = ""
    title: str = ""
    url: str = ""

    def __post_init__(self) -> None:
        """Validate event data."""
        super().__post_init__()
        if not self.owner_id:
            raise ValueError("owner_id cannot be empty")
        if not self.url:
            raise ValueError("url cannot be empty")


@dataclass(frozen=True)
class BookmarkInserted(DomainEvent):
    """Event raised when a bookmark entered the local collection view."""

    record_id: str = ""

    def __post_init__(self) -> None:
        """Validate event data."""
        super().__post_init__()
        if not self.record_id:
            raise ValueError("record_id cannot be empty")


@dataclass(frozen=True)
class BookmarkRemoved(DomainEvent):
    """Event raised when a bookmark left the local collection view."""

    record_id: str = ""

    def __post_init__(self) -> None:
        """Validate event data."""
        super().__post_init__()
        if not self.record_id:
            raise ValueError("record_id cannot be empty")


@dataclass(frozen=True)
class BookmarkDeletionFailed(DomainEvent):
    """Event raised when a confirmed delete was rejected by the backend.

    The record stays in place; presentations may use this to tell the user.
    """

    record_id: str = ""
    error_message: str = ""

    def __post_init__(self) -> None:
        """Validate event data."""
        super().__post_init__()
        if not self.record_id:
            raise ValueError("record_id cannot be empty")
        if not self.error_message:
            raise ValueError("error_message cannot be empty")


@dataclass(frozen=True)
class ConnectionStateChanged(DomainEvent):
    """Event raised when the push-channel subscription changes state."""

    old_state: ConnectionState = ConnectionState.CONNECTING
    new_state: ConnectionState = ConnectionState.CONNECTING

    def __post_init__(self) -> None:
        """Validate event data."""
        super().__post_init__()
        if self.old_state == self.new_state:
            raise ValueError("old_state and new_state must be different")
