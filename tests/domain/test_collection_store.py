"""Unit tests for SyncedCollectionStore reconciliation."""

from __future__ import annotations

import pytest

from linkstash.domain.services.collection_store import (
    ChangeKind,
    CollectionChange,
    SyncedCollectionStore,
)


def _ids(store: SyncedCollectionStore) -> list[str]:
    return [r.id for r in store.snapshot()]


class TestSyncedCollectionStore:
    """Test suite for SyncedCollectionStore."""

    @pytest.fixture
    def store(self, fake_clock):
        return SyncedCollectionStore(tombstone_ttl_seconds=30.0, clock=fake_clock)

    def test_seed_orders_newest_first(self, store, make_record):
        store.seed([make_record("a", minute=1), make_record("c", minute=3), make_record("b", minute=2)])
        assert _ids(store) == ["c", "b", "a"]
        assert store.size() == 3

    def test_seed_drops_duplicate_ids_keeping_first(self, store, make_record):
        store.seed([make_record("a", minute=1, title="first"), make_record("a", minute=2, title="second")])
        assert store.size() == 1
        assert store.get("a").title == "first"

    def test_seed_replaces_previous_view(self, store, make_record):
        store.seed([make_record("a")])
        store.seed([make_record("b")])
        assert _ids(store) == ["b"]
        assert not store.contains("a")

    def test_insert_at_created_at_position(self, store, make_record):
        store.seed([make_record("new", minute=10), make_record("old", minute=0)])
        assert store.apply_insert(make_record("mid", minute=5)) is True
        assert _ids(store) == ["new", "mid", "old"]

    def test_insert_newest_goes_first_and_oldest_last(self, store, make_record):
        store.seed([make_record("b", minute=5)])
        store.apply_insert(make_record("a", minute=9))
        store.apply_insert(make_record("c", minute=1))
        assert _ids(store) == ["a", "b", "c"]

    def test_equal_timestamps_keep_arrival_order(self, store, make_record):
        store.apply_insert(make_record("first", minute=3))
        store.apply_insert(make_record("second", minute=3))
        assert _ids(store) == ["first", "second"]

    def test_duplicate_insert_is_noop(self, store, make_record):
        record = make_record("a")
        assert store.apply_insert(record) is True
        assert store.apply_insert(record) is False
        assert store.size() == 1

    def test_duplicate_insert_keeps_first_copy(self, store, make_record):
        store.apply_insert(make_record("a", title="original"))
        store.apply_insert(make_record("a", title="replayed", minute=7))
        assert store.get("a").title == "original"

    def test_delete_removes_record(self, store, make_record):
        store.seed([make_record("a"), make_record("b", minute=1)])
        assert store.apply_delete("a") is True
        assert _ids(store) == ["b"]

    def test_delete_absent_is_noop_but_tombstones(self, store):
        assert store.apply_delete("ghost") is False
        assert store.size() == 0
        assert store.is_tombstoned("ghost")

    def test_late_insert_after_delete_is_suppressed(self, store, make_record):
        record = make_record("a")
        store.apply_insert(record)
        store.apply_delete("a")
        assert store.apply_insert(record) is False
        assert not store.contains("a")

    def test_delete_before_insert_suppresses_insert(self, store, make_record):
        store.apply_delete("a")
        assert store.apply_insert(make_record("a")) is False
        assert store.size() == 0

    def test_tombstone_expires_after_ttl(self, store, fake_clock, make_record):
        store.apply_delete("a")
        fake_clock.advance(29.9)
        assert store.is_tombstoned("a")
        fake_clock.advance(0.2)
        assert not store.is_tombstoned("a")
        assert store.apply_insert(make_record("a")) is True

    def test_seed_filters_recently_deleted_ids(self, store, make_record):
        store.apply_delete("a")
        store.seed([make_record("a"), make_record("b", minute=1)])
        assert _ids(store) == ["b"]

    def test_seed_after_tombstone_expiry_keeps_record(self, store, fake_clock, make_record):
        store.apply_delete("a")
        fake_clock.advance(31)
        store.seed([make_record("a")])
        assert store.contains("a")

    def test_tombstones_are_bounded(self, fake_clock, make_record):
        store = SyncedCollectionStore(max_tombstones=2, clock=fake_clock)
        for record_id in ("a", "b", "c"):
            store.apply_delete(record_id)
        assert not store.is_tombstoned("a")
        assert store.is_tombstoned("b")
        assert store.is_tombstoned("c")

    def test_snapshot_is_immutable_copy(self, store, make_record):
        store.apply_insert(make_record("a"))
        snapshot = store.snapshot()
        store.apply_insert(make_record("b", minute=1))
        assert len(snapshot) == 1
        assert isinstance(snapshot, tuple)

    @pytest.mark.parametrize(
        "kwargs", [{"tombstone_ttl_seconds": 0}, {"max_tombstones": 0}]
    )
    def test_rejects_invalid_limits(self, kwargs):
        with pytest.raises(ValueError):
            SyncedCollectionStore(**kwargs)


class TestStoreListeners:
    @pytest.fixture
    def store(self, fake_clock):
        return SyncedCollectionStore(clock=fake_clock)

    def test_listeners_receive_effective_changes_only(self, store, make_record):
        changes: list[CollectionChange] = []
        store.add_listener(changes.append)

        store.seed([])
        store.apply_insert(make_record("a"))
        store.apply_insert(make_record("a"))
        store.apply_delete("a")
        store.apply_delete("a")

        assert changes == [
            CollectionChange(ChangeKind.SEEDED),
            CollectionChange(ChangeKind.INSERTED, "a"),
            CollectionChange(ChangeKind.REMOVED, "a"),
        ]

    def test_failing_listener_does_not_block_mutation(self, store, make_record):
        seen: list[CollectionChange] = []

        def broken(change):
            raise RuntimeError("boom")

        store.add_listener(broken)
        store.add_listener(seen.append)

        assert store.apply_insert(make_record("a")) is True
        assert store.contains("a")
        assert len(seen) == 1

    def test_remove_listener(self, store, make_record):
        seen: list[CollectionChange] = []
        store.add_listener(seen.append)
        store.remove_listener(seen.append)
        store.remove_listener(seen.append)
        store.apply_insert(make_record("a"))
        assert seen == []
