"""Use case for submitting a new bookmark.

The controller validates the form, asks the persistence collaborator to
create the record, and raises a short-lived success signal. It never touches
the local collection: the new bookmark becomes visible only when the push
channel echoes the insert, exactly like a write made from another view.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING

from linkstash.application.dto.bookmark_dto import SubmissionResult
from linkstash.core.logging_utils import generate_correlation_id
from linkstash.core.time_utils import utc_now
from linkstash.core.url_utils import normalize_bookmark_url, validate_title
from linkstash.domain.events.bookmark_events import BookmarkSubmitted
from linkstash.domain.exceptions.domain_exceptions import (
    BookmarkValidationError,
    PersistenceError,
)
from linkstash.observability.metrics import record_persistence_call, record_submission

if TYPE_CHECKING:
    from linkstash.infrastructure.messaging.event_bus import EventBus
    from linkstash.protocols import BookmarkRepository

logger = logging.getLogger(__name__)

SAVE_FAILED_MESSAGE = "Failed to save. Please try again."
SUBMISSION_IN_PROGRESS_MESSAGE = "A submission is already in progress."
DEFAULT_SUCCESS_FLASH_SECONDS = 3.0


class SubmissionController:
    """Form state and submit workflow for adding a bookmark.

    Example:
        ```python
        controller = SubmissionController(repository, owner_id="user-1")
        result = await controller.submit("Article", "example.com")
        if result.accepted:
            assert controller.success  # expires on its own after 3 seconds
        ```

    """

    def __init__(
        self,
        repository: BookmarkRepository,
        owner_id: str,
        *,
        event_bus: EventBus | None = None,
        success_flash_seconds: float = DEFAULT_SUCCESS_FLASH_SECONDS,
    ) -> None:
        """Initialize the controller.

        Args:
            repository: Persistence collaborator used to create bookmarks.
            owner_id: Owner the new bookmarks belong to.
            event_bus: Optional bus receiving ``BookmarkSubmitted``.
            success_flash_seconds: Lifetime of the success signal.

        """
        if not owner_id:
            msg = "owner_id cannot be empty"
            raise ValueError(msg)
        self._repository = repository
        self._owner_id = owner_id
        self._event_bus = event_bus
        self._success_flash_seconds = success_flash_seconds

        self.title = ""
        self.url = ""
        self.field_errors: dict[str, str] = {}
        self.submitting = False
        self._success = False
        self._success_timer: asyncio.TimerHandle | None = None

    @property
    def owner_id(self) -> str:
        return self._owner_id

    @property
    def success(self) -> bool:
        return self._success

    def update_title(self, value: str) -> None:
        """Set the title field and clear its error."""
        self.title = value
        self.field_errors.pop("title", None)

    def update_url(self, value: str) -> None:
        """Set the URL field and clear its error."""
        self.url = value
        self.field_errors.pop("url", None)

    async def submit(self, title: str | None = None, raw_url: str | None = None) -> SubmissionResult:
        """Validate and submit the form.

        Args:
            title: New title field value; the current one is used when omitted.
            raw_url: New URL field value; the current one is used when omitted.

        Returns:
            Accepted result with the created record, field errors, or a generic error.

        """
        if self.submitting:
            logger.warning("bookmark_submit_rejected_in_flight", extra={"owner_id": self._owner_id})
            return SubmissionResult.failed(SUBMISSION_IN_PROGRESS_MESSAGE)

        if title is not None:
            self.title = title
        if raw_url is not None:
            self.url = raw_url
        self._clear_success()

        field_errors: dict[str, str] = {}
        clean_title = normalized_url = ""
        try:
            clean_title = validate_title(self.title)
        except BookmarkValidationError as exc:
            field_errors[exc.field] = exc.message
        try:
            normalized_url = normalize_bookmark_url(self.url)
        except BookmarkValidationError as exc:
            field_errors[exc.field] = exc.message

        if field_errors:
            self.field_errors = field_errors
            record_submission("invalid")
            logger.info(
                "bookmark_submit_invalid",
                extra={"owner_id": self._owner_id, "fields": sorted(field_errors)},
            )
            return SubmissionResult.rejected(field_errors)

        self.field_errors = {}
        correlation_id = generate_correlation_id()
        logger.info(
            "bookmark_submit_started",
            extra={"owner_id": self._owner_id, "correlation_id": correlation_id},
        )

        self.submitting = True
        started = time.perf_counter()
        try:
            record = await self._repository.create(self._owner_id, clean_title, normalized_url)
        except PersistenceError as exc:
            record_submission("error")
            logger.warning(
                "bookmark_submit_failed",
                extra={
                    "owner_id": self._owner_id,
                    "correlation_id": correlation_id,
                    "error": exc.message,
                },
            )
            return SubmissionResult.failed(SAVE_FAILED_MESSAGE, correlation_id)
        finally:
            self.submitting = False
            record_persistence_call("create", time.perf_counter() - started)

        self.title = ""
        self.url = ""
        self._raise_success()
        record_submission("accepted")
        logger.info(
            "bookmark_submit_completed",
            extra={
                "owner_id": self._owner_id,
                "correlation_id": correlation_id,
                "record_id": record.id,
            },
        )

        if self._event_bus is not None:
            await self._event_bus.publish(
                BookmarkSubmitted(
                    occurred_at=utc_now(),
                    aggregate_id=record.id,
                    owner_id=self._owner_id,
                    title=clean_title,
                    url=normalized_url,
                )
            )

        return SubmissionResult(accepted=True, record=record, correlation_id=correlation_id)

    def dispose(self) -> None:
        """Cancel the pending success-signal timer."""
        self._clear_success()

    def _raise_success(self) -> None:
        self._success = True
        loop = asyncio.get_running_loop()
        self._success_timer = loop.call_later(self._success_flash_seconds, self._clear_success)

    def _clear_success(self) -> None:
        if self._success_timer is not None:
            self._success_timer.cancel()
            self._success_timer = None
        self._success = False
