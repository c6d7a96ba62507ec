"""Tests for InMemoryCacheStore."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from syncache.cache.store import InMemoryCacheStore
from syncache.models.entry import CacheEntry
from syncache.protocols.store import CacheStore
from tests.conftest import FakeClock


class TestInMemoryCacheStore:
    """Basic get/set/delete behaviour."""

    def test_protocol_compliance(self) -> None:
        assert isinstance(InMemoryCacheStore(), CacheStore)

    def test_get_miss(self, store: InMemoryCacheStore) -> None:
        assert store.get("nonexistent") is None

    def test_set_and_get(self, store: InMemoryCacheStore, clock: FakeClock) -> None:
        store.set("clients", [1, 2, 3])
        entry = store.get("clients")
        assert isinstance(entry, CacheEntry)
        assert entry.value == [1, 2, 3]
        assert entry.fetched_at == clock.now
        assert entry.stale is False

    def test_overwrite_existing_key(self, store: InMemoryCacheStore, clock: FakeClock) -> None:
        store.set("k", "v1")
        clock.advance(10)
        store.set("k", "v2")
        entry = store.get("k")
        assert entry is not None
        assert entry.value == "v2"
        assert entry.fetched_at == clock.now
        assert len(store) == 1

    def test_entries_are_immutable(self, store: InMemoryCacheStore) -> None:
        entry = store.set("k", "v")
        with pytest.raises(ValidationError):
            entry.stale = True  # type: ignore[misc]

    def test_delete(self, store: InMemoryCacheStore) -> None:
        store.set("k", "v")
        assert store.delete("k") is True
        assert store.get("k") is None
        assert store.delete("k") is False

    def test_clear(self, store: InMemoryCacheStore) -> None:
        store.set("k1", "v1")
        store.set("k2", "v2")
        store.clear()
        assert len(store) == 0
        assert "k1" not in store

    def test_contains_and_keys(self, store: InMemoryCacheStore) -> None:
        store.set("a", 1)
        store.set("b", 2)
        assert "a" in store
        assert "z" not in store
        assert store.keys() == ["a", "b"]

    def test_invalid_construction(self) -> None:
        with pytest.raises(ValueError, match="default_ttl"):
            InMemoryCacheStore(default_ttl=0)
        with pytest.raises(ValueError, match="max_size"):
            InMemoryCacheStore(max_size=0)

    def test_repr(self) -> None:
        store = InMemoryCacheStore(default_ttl=60, max_size=100)
        assert "InMemoryCacheStore" in repr(store)
        assert "max_size=100" in repr(store)


class TestLazyStaleness:
    """Staleness is computed on read from fetched_at."""

    def test_fresh_within_ttl(self, store: InMemoryCacheStore, clock: FakeClock) -> None:
        store.set("k", "v1")
        clock.advance(0.05)
        entry = store.get("k", ttl=0.1)
        assert entry is not None
        assert entry.stale is False

    def test_stale_after_ttl_without_any_write(
        self, store: InMemoryCacheStore, clock: FakeClock
    ) -> None:
        store.set("k", "v1")
        clock.advance(0.15)
        entry = store.get("k", ttl=0.1)
        assert entry is not None
        assert entry.stale is True
        assert entry.value == "v1"

    def test_exactly_at_ttl_is_still_fresh(
        self, store: InMemoryCacheStore, clock: FakeClock
    ) -> None:
        store.set("k", "v")
        clock.advance(10)
        entry = store.get("k", ttl=10)
        assert entry is not None
        assert entry.stale is False

    def test_default_ttl_applies(self, clock: FakeClock) -> None:
        store = InMemoryCacheStore(default_ttl=5, clock=clock)
        store.set("k", "v")
        clock.advance(6)
        entry = store.get("k")
        assert entry is not None
        assert entry.stale is True

    def test_observed_staleness_is_sticky(
        self, store: InMemoryCacheStore, clock: FakeClock
    ) -> None:
        store.set("k", "v")
        clock.advance(2)
        assert store.get("k", ttl=1).stale is True  # type: ignore[union-attr]
        # A later reader with a longer ttl still sees the flag.
        assert store.get("k", ttl=100).stale is True  # type: ignore[union-attr]

    def test_set_clears_staleness(self, store: InMemoryCacheStore, clock: FakeClock) -> None:
        store.set("k", "v1")
        clock.advance(2)
        store.get("k", ttl=1)
        store.set("k", "v2")
        entry = store.get("k", ttl=1)
        assert entry is not None
        assert entry.stale is False
        assert entry.value == "v2"

    def test_ttl_example_timeline(self, store: InMemoryCacheStore, clock: FakeClock) -> None:
        store.set("k", "v1")
        clock.advance(0.05)
        assert store.get("k", ttl=0.1).stale is False  # type: ignore[union-attr]
        clock.advance(0.10)
        stale = store.get("k", ttl=0.1)
        assert stale is not None
        assert (stale.value, stale.stale) == ("v1", True)
        clock.advance(0.01)
        store.set("k", "v2")
        fresh = store.get("k", ttl=0.1)
        assert fresh is not None
        assert (fresh.value, fresh.stale) == ("v2", False)


class TestInvalidate:
    """Invalidation marks entries stale but keeps their values."""

    def test_invalidate_keeps_value(self, store: InMemoryCacheStore) -> None:
        store.set("k", "v")
        assert store.invalidate("k") is True
        entry = store.get("k")
        assert entry is not None
        assert entry.value == "v"
        assert entry.stale is True

    def test_invalidate_nonexistent_key(self, store: InMemoryCacheStore) -> None:
        assert store.invalidate("nonexistent") is False
        assert store.get("nonexistent") is None

    def test_invalidate_prefix(self, store: InMemoryCacheStore) -> None:
        store.set("clients", 1)
        store.set("clients:stats", 2)
        store.set("projects", 3)
        assert store.invalidate_prefix("clients") == 2
        assert store.get("clients").stale is True  # type: ignore[union-attr]
        assert store.get("clients:stats").stale is True  # type: ignore[union-attr]
        assert store.get("projects").stale is False  # type: ignore[union-attr]

    def test_invalidate_prefix_no_match(self, store: InMemoryCacheStore) -> None:
        store.set("projects", 3)
        assert store.invalidate_prefix("revenue") == 0


class TestMutate:
    """Local mutation without a fetch."""

    def test_mutate_with_callable(self, store: InMemoryCacheStore) -> None:
        store.set("clients", ["a"])
        entry = store.mutate("clients", lambda prev: [*prev, "b"])
        assert entry.value == ["a", "b"]
        assert store.get("clients").value == ["a", "b"]  # type: ignore[union-attr]

    def test_mutate_with_replacement_value(self, store: InMemoryCacheStore) -> None:
        store.set("count", 1)
        store.mutate("count", 5)
        assert store.get("count").value == 5  # type: ignore[union-attr]

    def test_mutate_missing_key_passes_none(self, store: InMemoryCacheStore) -> None:
        seen: list[object] = []

        def updater(prev: object) -> str:
            seen.append(prev)
            return "created"

        entry = store.mutate("new", updater)
        assert seen == [None]
        assert entry.value == "created"

    def test_mutate_marks_fresh(self, store: InMemoryCacheStore, clock: FakeClock) -> None:
        store.set("k", 1)
        store.invalidate("k")
        clock.advance(1)
        entry = store.mutate("k", lambda prev: prev + 1)
        assert entry.stale is False
        assert entry.fetched_at == clock.now


class TestLruBound:
    """Optional max_size evicts the least recently used entry."""

    def test_unbounded_by_default(self, store: InMemoryCacheStore) -> None:
        for i in range(500):
            store.set(f"k{i}", i)
        assert len(store) == 500

    def test_max_size_eviction(self, clock: FakeClock) -> None:
        store = InMemoryCacheStore(max_size=3, clock=clock)
        store.set("k1", "v1")
        store.set("k2", "v2")
        store.set("k3", "v3")
        store.set("k4", "v4")
        assert store.get("k1") is None
        assert store.get("k4") == CacheEntry(value="v4", fetched_at=clock.now)

    def test_read_refreshes_recency(self, clock: FakeClock) -> None:
        store = InMemoryCacheStore(max_size=2, clock=clock)
        store.set("k1", "v1")
        store.set("k2", "v2")
        store.get("k1")
        store.set("k3", "v3")  # evicts k2, the least recently used
        assert store.get("k2") is None
        assert store.get("k1") is not None
        assert store.get("k3") is not None

    def test_overwrite_does_not_evict(self, clock: FakeClock) -> None:
        store = InMemoryCacheStore(max_size=2, clock=clock)
        store.set("k1", "v1")
        store.set("k2", "v2")
        store.set("k1", "v1_updated")
        assert store.get("k1").value == "v1_updated"  # type: ignore[union-attr]
        assert store.get("k2").value == "v2"  # type: ignore[union-attr]
