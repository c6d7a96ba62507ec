"""In-memory cache store implementation."""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Any

from syncache.models.entry import CacheEntry

logger = logging.getLogger(__name__)


class InMemoryCacheStore:
    """Dict-backed cache store with lazy staleness and an optional LRU bound.

    Staleness is computed at read time from ``fetched_at``; there is no
    background sweep. Once a reader observes an expired entry, the stale flag
    is written back and stays set until the next ``set`` or ``mutate``.
    Entries are never deleted by age.

    Implements the ``CacheStore`` protocol.

    Parameters:
        default_ttl: Freshness window in seconds used when ``get`` is called
            without an explicit ttl. Default 300 (5 minutes).
        max_size: Maximum number of entries. When exceeded, the least
            recently used entry is evicted. None (the default) means unbounded.
        clock: Zero-argument callable returning the current time in seconds.
            Defaults to ``time.monotonic``.
    """

    __slots__ = ("_clock", "_default_ttl", "_entries", "_lock", "_max_size")

    def __init__(
        self,
        default_ttl: float = 300.0,
        max_size: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if default_ttl <= 0:
            msg = "default_ttl must be positive"
            raise ValueError(msg)
        if max_size is not None and max_size <= 0:
            msg = "max_size must be a positive integer or None"
            raise ValueError(msg)
        self._default_ttl = default_ttl
        self._max_size = max_size
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()

    @property
    def default_ttl(self) -> float:
        """The freshness window applied when ``get`` receives no ttl."""
        return self._default_ttl

    @property
    def max_size(self) -> int | None:
        """The LRU bound, or None when unbounded."""
        return self._max_size

    def get(self, key: str, ttl: float | None = None) -> CacheEntry | None:
        """Retrieve an entry, marking it stale if it outlived ``ttl``.

        Parameters:
            key: The cache key.
            ttl: Freshness window in seconds. None means ``default_ttl``.

        Returns:
            The entry snapshot, or None on a miss.
        """
        effective_ttl = self._default_ttl if ttl is None else ttl
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            self._entries.move_to_end(key)
            if not entry.stale and entry.is_expired(self._clock(), effective_ttl):
                entry = entry.model_copy(update={"stale": True})
                self._entries[key] = entry
                logger.debug("Entry %r went stale (ttl=%ss)", key, effective_ttl)
            return entry

    def set(self, key: str, value: Any) -> CacheEntry:
        """Store ``value`` as the fresh entry for ``key``.

        Parameters:
            key: The cache key.
            value: The value to cache.

        Returns:
            The new entry.
        """
        with self._lock:
            return self._put(key, value)

    def invalidate(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            if not entry.stale:
                self._entries[key] = entry.model_copy(update={"stale": True})
            return True

    def invalidate_prefix(self, prefix: str) -> int:
        with self._lock:
            matched = [k for k in self._entries if k.startswith(prefix)]
            for k in matched:
                entry = self._entries[k]
                if not entry.stale:
                    self._entries[k] = entry.model_copy(update={"stale": True})
            return len(matched)

    def mutate(self, key: str, updater: Callable[[Any], Any] | Any) -> CacheEntry:
        """Apply a local update to the cached value and mark it fresh.

        The read of the previous value and the write of the new one happen
        under the same lock, so concurrent mutations of a key do not lose
        updates.

        Parameters:
            key: The cache key.
            updater: Callable ``(previous_value | None) -> new_value``, or
                the replacement value itself. Must not call back
                into the store.

        Returns:
            The new entry.
        """
        with self._lock:
            if callable(updater):
                previous = self._entries.get(key)
                value = updater(previous.value if previous is not None else None)
            else:
                value = updater
            return self._put(key, value)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def keys(self) -> list[str]:
        """Return the cached keys, least recently used first."""
        with self._lock:
            return list(self._entries)

    def _put(self, key: str, value: Any) -> CacheEntry:
        """Insert under the lock, evicting the least recently used entry if full."""
        entry = CacheEntry(value=value, fetched_at=self._clock(), stale=False)
        if key in self._entries:
            self._entries[key] = entry
            self._entries.move_to_end(key)
            return entry
        if self._max_size is not None:
            while len(self._entries) >= self._max_size:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Evicted least recently used entry %r", evicted)
        self._entries[key] = entry
        return entry

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __repr__(self) -> str:
        return (
            f"InMemoryCacheStore(default_ttl={self._default_ttl}, "
            f"max_size={self._max_size}, entries={len(self._entries)})"
        )
