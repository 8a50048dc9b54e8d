"""Pytest configuration and shared fixtures.

This module provides common fixtures for all tests.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from linkstash.adapters.memory import InMemoryBookmarkRepository, InMemoryRealtimeChannel
from linkstash.domain.models.bookmark import BookmarkRecord

OWNER = "user-1"
OTHER_OWNER = "user-2"
BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TickingTimestamps:
    """Datetime source that moves one second forward per call."""

    def __init__(self, start: datetime = BASE_TIME) -> None:
        self._next = start

    def __call__(self) -> datetime:
        value = self._next
        self._next += timedelta(seconds=1)
        return value


@pytest.fixture
def make_record():
    """Factory for bookmark records; ``minute`` offsets ``created_at`` from a fixed base."""

    def _make(
        record_id: str,
        *,
        minute: int = 0,
        owner_id: str = OWNER,
        title: str | None = None,
        url: str | None = None,
    ) -> BookmarkRecord:
        return BookmarkRecord(
            id=record_id,
            owner_id=owner_id,
            title=title or f"Bookmark {record_id}",
            url=url or f"https://example.com/{record_id}",
            created_at=BASE_TIME + timedelta(minutes=minute),
        )

    return _make


@pytest.fixture
def row_payload():
    """Factory for raw change-event rows as the backend emits them."""

    def _row(record_id: str, *, minute: int = 0, owner_id: str = OWNER) -> dict:
        return {
            "id": record_id,
            "user_id": owner_id,
            "title": f"Bookmark {record_id}",
            "url": f"https://example.com/{record_id}",
            "created_at": (BASE_TIME + timedelta(minutes=minute)).isoformat(),
        }

    return _row


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def channel():
    return InMemoryRealtimeChannel()


@pytest.fixture
def repository(channel):
    counter = iter(range(1, 10_000))
    return InMemoryBookmarkRepository(
        channel,
        clock=TickingTimestamps(),
        id_factory=lambda: f"bm-{next(counter)}",
    )


@pytest.fixture
def wait_until():
    """Poll a predicate while letting background tasks run."""

    async def _wait(predicate, timeout: float = 1.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                msg = "condition not met before timeout"
                raise AssertionError(msg)
            await asyncio.sleep(0.001)

    return _wait
