"""In-memory cache store."""

from .store import InMemoryCacheStore

__all__ = [
    "InMemoryCacheStore",
]
