"""Protocol definition for cache stores."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from syncache.models.entry import CacheEntry


@runtime_checkable
class CacheStore(Protocol):
    """The single source of truth for what is currently known per key.

    Implementations hold the latest value per key and answer staleness
    queries. They perform no I/O and never raise for a missing key.
    """

    def __contains__(self, key: object) -> bool:
        """Whether an entry, fresh or stale, is held for ``key``."""
        ...

    def get(self, key: str, ttl: float | None = None) -> CacheEntry | None:
        """Return the entry for ``key``, flagged stale if older than ``ttl``.

        Parameters:
            key: The cache key.
            ttl: Freshness window in seconds. None means the store default.

        Returns:
            The entry, or None on a miss.
        """
        ...

    def set(self, key: str, value: Any) -> CacheEntry:
        """Create or overwrite the entry for ``key`` as fresh."""
        ...

    def invalidate(self, key: str) -> bool:
        """Mark the entry stale without removing its value.

        Returns:
            True if an entry existed.
        """
        ...

    def invalidate_prefix(self, prefix: str) -> int:
        """Mark every entry whose key starts with ``prefix`` stale.

        Returns:
            The number of entries marked.
        """
        ...

    def mutate(self, key: str, updater: Callable[[Any], Any] | Any) -> CacheEntry:
        """Replace the cached value locally and mark it fresh.

        Parameters:
            key: The cache key.
            updater: A callable receiving the previous value (or None) and
                returning the new one, or the new value itself.
        """
        ...

    def delete(self, key: str) -> bool:
        """Remove the entry for ``key``. Returns True if it existed."""
        ...

    def clear(self) -> None:
        """Remove all entries."""
        ...
