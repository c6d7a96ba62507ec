"""Synchronizer callback that turns fetch lifecycle events into metrics."""

from __future__ import annotations

from syncache.observability.models import MetricPoint
from syncache.protocols.observability import MetricsCollector


class MetricsCallback:
    """A ``SyncCallback`` that records fetch metrics on a collector.

    Usage::

        from syncache.observability import InMemoryMetricsCollector, MetricsCallback

        collector = InMemoryMetricsCollector()
        sync = Synchronizer(callbacks=[MetricsCallback(collector)])

        await sync.refresh("clients", fetch_clients)
        collector.get_summary("sync.fetch.duration_ms")

    Recorded metrics, all tagged with ``key``:
        ``sync.fetch.duration_ms``, ``sync.fetch.attempts`` (per successful
        cycle), ``sync.fetch.retries``, ``sync.fetch.errors`` and
        ``sync.fetch.cancelled`` (counters, value 1). Errors are also tagged
        with the type of the exception that ended the last attempt.

    Parameters:
        collector: Destination for the metric points.
    """

    __slots__ = ("_collector",)

    def __init__(self, collector: MetricsCollector) -> None:
        self._collector = collector

    @property
    def collector(self) -> MetricsCollector:
        return self._collector

    def on_fetch_start(self, key: str, attempt: int) -> None:
        pass

    def on_fetch_retry(self, key: str, attempt: int, delay: float, error: Exception) -> None:
        self._collector.record(
            MetricPoint.for_key(
                "sync.fetch.retries", key, attempt=str(attempt), delay=f"{delay:g}"
            ),
        )

    def on_fetch_success(self, key: str, attempts: int, time_ms: float) -> None:
        self._collector.record(MetricPoint.for_key("sync.fetch.duration_ms", key, time_ms))
        self._collector.record(MetricPoint.for_key("sync.fetch.attempts", key, attempts))

    def on_fetch_error(self, key: str, error: Exception) -> None:
        cause = error.__cause__ if error.__cause__ is not None else error
        self._collector.record(
            MetricPoint.for_key("sync.fetch.errors", key, error=type(cause).__name__),
        )

    def on_fetch_cancelled(self, key: str) -> None:
        self._collector.record(MetricPoint.for_key("sync.fetch.cancelled", key))
