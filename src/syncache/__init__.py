"""syncache: resilient data synchronization cache for asyncio applications.

Synchronization:
    Synchronizer, Subscription, SyncCallback, FetchFn

Cache Store:
    InMemoryCacheStore, CacheStore

Models & Types:
    CacheEntry, SyncOptions, SyncState, SyncStatus

Observability:
    MetricsCallback, InMemoryMetricsCollector, LoggingMetricsCollector,
    MetricPoint, MetricsCollector

Exceptions:
    SyncCacheError, TransientFetchError, TerminalFetchError, UnknownKeyError,
    SynchronizerClosedError
"""

from importlib.metadata import PackageNotFoundError, version

from syncache.cache import InMemoryCacheStore
from syncache.exceptions import (
    SyncCacheError,
    SynchronizerClosedError,
    TerminalFetchError,
    TransientFetchError,
    UnknownKeyError,
)
from syncache.models import CacheEntry, SyncOptions, SyncState, SyncStatus
from syncache.observability import (
    InMemoryMetricsCollector,
    LoggingMetricsCollector,
    MetricPoint,
    MetricsCallback,
)
from syncache.protocols import CacheStore, MetricsCollector
from syncache.sync import FetchFn, Subscription, SyncCallback, Synchronizer

try:
    __version__ = version("syncache")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

__all__ = [
    "CacheEntry",
    "CacheStore",
    "FetchFn",
    "InMemoryCacheStore",
    "InMemoryMetricsCollector",
    "LoggingMetricsCollector",
    "MetricPoint",
    "MetricsCallback",
    "MetricsCollector",
    "Subscription",
    "SyncCacheError",
    "SyncCallback",
    "SyncOptions",
    "SyncState",
    "SyncStatus",
    "Synchronizer",
    "SynchronizerClosedError",
    "TerminalFetchError",
    "TransientFetchError",
    "UnknownKeyError",
    "__version__",
]
