"""State notifications emitted to subscribers."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict

from .entry import CacheEntry


class SyncStatus(StrEnum):
    """Coarse status of a key as seen by a consumer."""

    IDLE = "idle"
    LOADING = "loading"
    ERROR = "error"
    STALE = "stale"
    FRESH = "fresh"


class SyncState(BaseModel):
    """One notification in a subscription's state stream.

    ``error`` and ``data`` are independent: after a terminal failure a state
    can carry both the error and the last usable (stale) value.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    key: str
    data: Any = None
    error: BaseException | None = None
    loading: bool = False
    stale: bool = False
    fetched_at: float | None = None

    @property
    def has_data(self) -> bool:
        """Whether the state carries a cached value."""
        return self.fetched_at is not None

    @property
    def status(self) -> SyncStatus:
        """Single status to drive an indicator; loading wins over error, error over stale."""
        if self.loading:
            return SyncStatus.LOADING
        if self.error is not None:
            return SyncStatus.ERROR
        if not self.has_data:
            return SyncStatus.IDLE
        if self.stale:
            return SyncStatus.STALE
        return SyncStatus.FRESH

    @classmethod
    def from_entry(
        cls,
        key: str,
        entry: CacheEntry,
        *,
        stale: bool | None = None,
        error: BaseException | None = None,
    ) -> SyncState:
        """Build a data-carrying state from a cache entry."""
        return cls(
            key=key,
            data=entry.value,
            error=error,
            stale=entry.stale if stale is None else stale,
            fetched_at=entry.fetched_at,
        )
