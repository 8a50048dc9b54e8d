"""Protocol definitions for the external collaborators of the sync engine.

The engine never reaches for global clients: persistence, the push channel
and identity are injected through these contracts, which keeps the
reconciliation logic testable against in-memory fakes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from linkstash.domain.models.bookmark import BookmarkRecord
    from linkstash.infrastructure.messaging.channel_messages import ChannelMessage


@runtime_checkable
class BookmarkRepository(Protocol):
    """Protocol for bookmark persistence.

    Implementations enforce ownership server-side and raise
    ``PersistenceError`` on any failed call.
    """

    async def create(self, owner_id: str, title: str, url: str) -> BookmarkRecord:
        """Create a bookmark and return the stored record with its server-assigned id."""
        ...

    async def list(self, owner_id: str) -> list[BookmarkRecord]:
        """Return every bookmark of ``owner_id``, newest first."""
        ...

    async def delete(self, record_id: str, owner_id: str) -> None:
        """Delete ``record_id`` only if it belongs to ``owner_id``."""
        ...


class ChannelStream(Protocol):
    """One live subscription: an async stream of status and change messages."""

    def __aiter__(self) -> AsyncIterator[ChannelMessage]: ...


@runtime_checkable
class RealtimeChannel(Protocol):
    """Protocol for the push channel delivering row change events."""

    async def subscribe(self, topic: str, *, owner_filter: str | None = None) -> ChannelStream:
        """Open a subscription on ``topic``; status starts at CONNECTING.

        ``owner_filter`` is a PostgREST-style row filter (``user_id=eq.<owner>``)
        the channel may apply server-side. Subscribers still filter on receipt.
        """
        ...

    async def unsubscribe(self, stream: ChannelStream) -> None:
        """Release a subscription. Must tolerate being called for a closed stream."""
        ...


class IdentityProvider(Protocol):
    """Protocol for the signed-in identity (sign-in itself is out of scope)."""

    def current_owner_id(self) -> str | None: ...

    def on_change(self, callback: Callable[[str | None], None]) -> Callable[[], None]:
        """Register ``callback`` for owner changes; returns an unsubscribe function."""
        ...
