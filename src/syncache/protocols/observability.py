"""Protocol for metrics sinks fed by ``MetricsCallback``."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from syncache.observability.models import MetricPoint


@runtime_checkable
class MetricsCollector(Protocol):
    """Receives fetch metrics.

    ``record`` is called synchronously from the event loop while fetches
    run, so implementations should hand slow exports off to ``flush``.
    """

    def record(self, metric: MetricPoint) -> None: ...

    def flush(self) -> None:
        """Push anything buffered to the backend."""
        ...
