"""Tests for SubmissionController."""

from __future__ import annotations

import asyncio

import pytest

from linkstash.application.use_cases.submit_bookmark import (
    SAVE_FAILED_MESSAGE,
    SUBMISSION_IN_PROGRESS_MESSAGE,
    SubmissionController,
)
from linkstash.domain.events.bookmark_events import BookmarkSubmitted
from linkstash.domain.exceptions.domain_exceptions import PersistenceError
from linkstash.infrastructure.messaging.event_bus import EventBus

OWNER = "user-1"


class BlockingRepository:
    """Repository whose create waits until released."""

    def __init__(self) -> None:
        self.release = asyncio.Event()
        self.calls = []

    async def create(self, owner_id, title, url):
        self.calls.append((owner_id, title, url))
        await self.release.wait()
        raise PersistenceError("timeout", operation="create")

    async def list(self, owner_id):
        return []

    async def delete(self, record_id, owner_id):
        return None


class TestSubmissionController:
    """Test suite for SubmissionController."""

    @pytest.fixture
    def controller(self, repository):
        controller = SubmissionController(repository, OWNER, success_flash_seconds=0.05)
        yield controller
        controller.dispose()

    @pytest.mark.asyncio
    async def test_valid_submission_calls_create_with_normalized_url(
        self, controller, repository
    ):
        result = await controller.submit("  Article ", "example.com")

        assert result.accepted is True
        assert result.field_errors == {}
        assert result.record is not None
        assert result.record.url == "https://example.com"
        assert repository.calls == [("create", (OWNER, "Article", "https://example.com"))]

    @pytest.mark.asyncio
    async def test_success_clears_fields_and_flashes(self, controller):
        controller.update_title("Docs")
        controller.update_url("docs.python.org")

        result = await controller.submit()

        assert result.accepted
        assert controller.title == ""
        assert controller.url == ""
        assert controller.success is True
        assert controller.submitting is False

        await asyncio.sleep(0.1)
        assert controller.success is False

    @pytest.mark.asyncio
    async def test_field_errors_have_no_side_effect(self, controller, repository):
        result = await controller.submit("", "localhost")

        assert result.accepted is False
        assert result.field_errors == {
            "title": "Please enter a title",
            "url": "Please enter a real website URL",
        }
        assert controller.field_errors == result.field_errors
        assert repository.calls == []
        assert controller.success is False
        # The typed values stay so the user can fix them.
        assert controller.url == "localhost"

    @pytest.mark.asyncio
    async def test_only_failing_field_is_reported(self, controller):
        result = await controller.submit("Title", "")
        assert result.field_errors == {"url": "Please enter a URL, e.g. google.com"}

    @pytest.mark.asyncio
    async def test_editing_a_field_clears_its_error(self, controller):
        await controller.submit("", "ftp://x")
        assert set(controller.field_errors) == {"title", "url"}

        controller.update_url("example.com")
        assert set(controller.field_errors) == {"title"}

        controller.update_title("Fixed")
        assert controller.field_errors == {}

    @pytest.mark.asyncio
    async def test_persistence_failure_returns_generic_error(self, controller, repository):
        repository.fail_next("create")

        result = await controller.submit("Article", "example.com")

        assert result.accepted is False
        assert result.error == SAVE_FAILED_MESSAGE
        assert result.field_errors == {}
        assert controller.submitting is False
        assert controller.success is False
        # Inputs are kept for a manual retry.
        assert controller.title == "Article"
        assert len(repository.calls) == 1

    @pytest.mark.asyncio
    async def test_second_submit_while_in_flight_is_rejected(self):
        repository = BlockingRepository()
        controller = SubmissionController(repository, OWNER)

        first = asyncio.create_task(controller.submit("One", "one.com"))
        await asyncio.sleep(0)
        assert controller.submitting is True

        second = await controller.submit("Two", "two.com")
        assert second.accepted is False
        assert second.error == SUBMISSION_IN_PROGRESS_MESSAGE
        assert len(repository.calls) == 1

        repository.release.set()
        await first
        assert controller.submitting is False

    @pytest.mark.asyncio
    async def test_publishes_submitted_event(self, repository):
        bus = EventBus()
        events = []

        async def on_submitted(event):
            events.append(event)

        bus.subscribe(BookmarkSubmitted, on_submitted)
        controller = SubmissionController(repository, OWNER, event_bus=bus)

        result = await controller.submit("Article", "example.com")
        controller.dispose()

        assert len(events) == 1
        assert events[0].aggregate_id == result.record.id
        assert events[0].url == "https://example.com"
        assert events[0].owner_id == OWNER

    def test_owner_required(self, repository):
        with pytest.raises(ValueError):
            SubmissionController(repository, "")
