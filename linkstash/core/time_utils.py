from __future__ import annotations

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Return a timezone-aware UTC datetime."""
    return datetime.now(UTC)


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so ordering comparisons never mix naive and aware values."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value
