"""Cache entry model."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


class CacheEntry(BaseModel):
    """The last known value for one cache key.

    Entries are immutable snapshots. The store replaces an entry instead of
    editing it, so a consumer holding one never sees it change underneath.
    """

    value: Any
    fetched_at: float
    stale: bool = False

    model_config = ConfigDict(frozen=True)

    def age(self, now: float) -> float:
        """Seconds elapsed between ``fetched_at`` and ``now``."""
        return max(0.0, now - self.fetched_at)

    def is_expired(self, now: float, ttl: float) -> bool:
        """Whether the entry has outlived ``ttl`` at time ``now``."""
        return now - self.fetched_at > ttl
