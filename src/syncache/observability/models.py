"""Metric point model for fetch observability."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field


class MetricPoint(BaseModel):
    """One measurement about a fetch cycle.

    Parameters:
        name: Metric name, e.g. ``"sync.fetch.duration_ms"``.
        value: The measurement. Counters use ``1``.
        timestamp: When it was recorded (UTC).
        tags: String labels. The synchronizer always sets ``key``.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    value: float
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    tags: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def for_key(cls, name: str, key: str, value: float = 1, **tags: str) -> MetricPoint:
        """Build a point tagged with the cache ``key`` plus any extra tags."""
        return cls(name=name, value=value, tags={"key": key, **tags})

    @property
    def key(self) -> str | None:
        """The cache key this point is about, if tagged."""
        return self.tags.get("key")
