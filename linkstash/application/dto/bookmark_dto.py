"""Data Transfer Objects for bookmark operations.

DTOs are simple data structures used to transfer results from use cases to
the presentation layer. They carry no business logic.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from linkstash.domain.models.bookmark import BookmarkRecord


@dataclass(frozen=True)
class SubmissionResult:
    """Outcome of one bookmark submission.

    ``field_errors`` maps ``"title"``/``"url"`` to a user-facing message;
    ``error`` is the generic message for failures not tied to a field.
    """

    accepted: bool
    field_errors: dict[str, str] = field(default_factory=dict)
    error: str | None = None
    record: BookmarkRecord | None = None
    correlation_id: str | None = None

    @classmethod
    def rejected(cls, field_errors: dict[str, str]) -> SubmissionResult:
        return cls(accepted=False, field_errors=dict(field_errors))

    @classmethod
    def failed(cls, error: str, correlation_id: str | None = None) -> SubmissionResult:
        return cls(accepted=False, error=error, correlation_id=correlation_id)


class DeletionOutcome(str, Enum):
    REMOVED = "removed"
    FAILED = "failed"
    NOTHING_PENDING = "nothing_pending"


@dataclass(frozen=True)
class DeletionResult:
    """Outcome of confirming a pending deletion."""

    outcome: DeletionOutcome
    record_id: str | None = None
    error: str | None = None

    @property
    def removed(self) -> bool:
        return self.outcome is DeletionOutcome.REMOVED
