"""Protocol definitions for syncache's pluggable architecture."""

from .observability import MetricsCollector
from .store import CacheStore

__all__ = [
    "CacheStore",
    "MetricsCollector",
]
