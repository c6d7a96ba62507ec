"""Metrics collectors for synchronizer fetch metrics."""

from __future__ import annotations

import json
import logging
from collections import deque
from typing import Any

from syncache.observability.models import MetricPoint

logger = logging.getLogger(__name__)


class InMemoryMetricsCollector:
    """Keeps metric points in memory, for tests and ad-hoc inspection.

    Points can be queried by name and cache key, summarised, or totalled
    per key (handy for counters like ``sync.fetch.errors``).

    Parameters:
        max_points: Keep only the most recent points. Unbounded when None.
    """

    __slots__ = ("_points",)

    def __init__(self, max_points: int | None = None) -> None:
        if max_points is not None and max_points <= 0:
            msg = f"max_points must be positive, got {max_points}"
            raise ValueError(msg)
        self._points: deque[MetricPoint] = deque(maxlen=max_points)

    def record(self, metric: MetricPoint) -> None:
        self._points.append(metric)

    def flush(self) -> None:
        """Nothing to push; points stay queryable."""

    def get_metrics(self, name: str | None = None, key: str | None = None) -> list[MetricPoint]:
        """Return recorded points, oldest first.

        Parameters:
            name: Only points with this metric name.
            key: Only points tagged with this cache key.
        """
        return [
            m
            for m in self._points
            if (name is None or m.name == name) and (key is None or m.key == key)
        ]

    def totals_by_key(self, name: str) -> dict[str, float]:
        """Sum the values of ``name`` per cache key."""
        totals: dict[str, float] = {}
        for m in self.get_metrics(name):
            if m.key is not None:
                totals[m.key] = totals.get(m.key, 0.0) + m.value
        return totals

    def get_summary(self, name: str, key: str | None = None) -> dict[str, Any]:
        """Summary statistics for ``name``, optionally for one key.

        Returns:
            ``min``, ``max``, ``avg``, ``count``, ``p50`` and ``p95``, or an
            empty dict when nothing matches.
        """
        values = sorted(m.value for m in self.get_metrics(name, key))
        if not values:
            return {}
        return {
            "min": values[0],
            "max": values[-1],
            "avg": sum(values) / len(values),
            "count": len(values),
            "p50": _percentile(values, 50),
            "p95": _percentile(values, 95),
        }

    def clear(self) -> None:
        self._points.clear()


class LoggingMetricsCollector:
    """Writes each point as one JSON log line on this module's logger.

    Parameters:
        log_level: Level used for the metric lines.
    """

    __slots__ = ("_log_level",)

    def __init__(self, log_level: int = logging.INFO) -> None:
        self._log_level = log_level

    def record(self, metric: MetricPoint) -> None:
        if not logger.isEnabledFor(self._log_level):
            return
        payload = {
            "name": metric.name,
            "value": metric.value,
            "key": metric.key,
            "timestamp": metric.timestamp.isoformat(),
            "tags": metric.tags,
        }
        logger.log(self._log_level, json.dumps(payload, default=str))

    def flush(self) -> None:
        """Lines are written on ``record``; nothing is buffered."""


def _percentile(sorted_values: list[float], pct: int) -> float:
    """Linearly interpolated percentile of a non-empty sorted list."""
    if len(sorted_values) == 1:
        return sorted_values[0]
    idx = pct / 100 * (len(sorted_values) - 1)
    lower = int(idx)
    if lower + 1 >= len(sorted_values):
        return sorted_values[-1]
    weight = idx - lower
    return sorted_values[lower] * (1 - weight) + sorted_values[lower + 1] * weight
