"""Tests for the in-memory repository and channel adapters."""

from __future__ import annotations

import pytest

from linkstash.adapters.memory import InMemoryBookmarkRepository, InMemoryRealtimeChannel
from linkstash.adapters.memory.channel import parse_owner_filter
from linkstash.domain.exceptions.domain_exceptions import PersistenceError
from linkstash.infrastructure.messaging.channel_messages import (
    ChangeEventKind,
    ChangeMessage,
    StatusMessage,
    SubscriptionStatus,
)
from linkstash.protocols import BookmarkRepository, RealtimeChannel

OWNER = "user-1"


async def _drain(stream, count):
    messages = []
    async for message in stream:
        messages.append(message)
        if len(messages) == count:
            break
    return messages


class TestInMemoryRepository:
    def test_satisfies_protocol(self, repository):
        assert isinstance(repository, BookmarkRepository)

    @pytest.mark.asyncio
    async def test_create_assigns_id_and_timestamp(self, repository):
        first = await repository.create(OWNER, "A", "https://a.io")
        second = await repository.create(OWNER, "B", "https://b.io")

        assert first.id != second.id
        assert second.is_newer_than(first)

    @pytest.mark.asyncio
    async def test_list_is_owner_scoped_and_newest_first(self, repository):
        older = await repository.create(OWNER, "A", "https://a.io")
        await repository.create("user-2", "X", "https://x.io")
        newer = await repository.create(OWNER, "B", "https://b.io")

        assert [r.id for r in await repository.list(OWNER)] == [newer.id, older.id]

    @pytest.mark.asyncio
    async def test_delete_is_owner_scoped(self, repository):
        record = await repository.create(OWNER, "A", "https://a.io")

        await repository.delete(record.id, "user-2")
        assert len(repository.rows()) == 1

        await repository.delete(record.id, OWNER)
        assert repository.rows() == []

    @pytest.mark.asyncio
    async def test_fail_next_raises_once(self, repository):
        repository.fail_next("create", "disk full")

        with pytest.raises(PersistenceError, match="disk full") as exc_info:
            await repository.create(OWNER, "A", "https://a.io")
        assert exc_info.value.operation == "create"

        await repository.create(OWNER, "A", "https://a.io")

    def test_fail_next_rejects_unknown_operation(self, repository):
        with pytest.raises(ValueError):
            repository.fail_next("update")

    @pytest.mark.asyncio
    async def test_writes_are_echoed_to_channel(self, repository, channel):
        stream = await channel.subscribe("bookmarks:user-1", owner_filter="user_id=eq.user-1")
        record = await repository.create(OWNER, "A", "https://a.io")
        await repository.delete(record.id, OWNER)

        messages = await _drain(stream, 4)

        assert messages[0] == StatusMessage(SubscriptionStatus.CONNECTING)
        assert messages[1] == StatusMessage(SubscriptionStatus.ACTIVE)
        assert messages[2].kind is ChangeEventKind.INSERT
        assert messages[2].payload["id"] == record.id
        assert messages[2].payload["user_id"] == OWNER
        assert messages[3] == ChangeMessage(
            ChangeEventKind.DELETE, {"id": record.id, "user_id": OWNER}
        )

    @pytest.mark.asyncio
    async def test_works_without_channel(self):
        repository = InMemoryBookmarkRepository()
        record = await repository.create(OWNER, "A", "https://a.io")
        assert await repository.list(OWNER) == [record]


class TestInMemoryChannel:
    def test_satisfies_protocol(self, channel):
        assert isinstance(channel, RealtimeChannel)

    def test_parse_owner_filter(self):
        assert parse_owner_filter("user_id=eq.abc") == "abc"
        assert parse_owner_filter(None) is None
        with pytest.raises(ValueError):
            parse_owner_filter("title=eq.x")
        with pytest.raises(ValueError):
            parse_owner_filter("user_id=eq.")

    @pytest.mark.asyncio
    async def test_hold_and_release_reverses_order(self, channel):
        stream = await channel.subscribe("t")
        channel.hold()
        channel.broadcast(ChangeMessage(ChangeEventKind.INSERT, {"id": "1"}))
        channel.broadcast(ChangeMessage(ChangeEventKind.DELETE, {"id": "1"}))
        channel.release(reverse=True)

        messages = await _drain(stream, 4)
        assert [m.kind for m in messages[2:]] == [ChangeEventKind.DELETE, ChangeEventKind.INSERT]

    @pytest.mark.asyncio
    async def test_unsubscribe_ends_stream_and_is_idempotent(self):
        channel = InMemoryRealtimeChannel(auto_ack=False)
        stream = await channel.subscribe("t")

        await channel.unsubscribe(stream)
        await channel.unsubscribe(stream)

        assert channel.unsubscribe_calls == 1
        assert channel.open_streams == []
        assert await _drain(stream, 10) == [StatusMessage(SubscriptionStatus.CONNECTING)]

    @pytest.mark.asyncio
    async def test_break_stream_raises_in_reader(self, channel):
        stream = await channel.subscribe("t")
        channel.break_stream("t", ConnectionResetError("gone"))

        with pytest.raises(ConnectionResetError):
            await _drain(stream, 10)
