"""Core data models for syncache."""

from .entry import CacheEntry
from .options import SyncOptions
from .state import SyncState, SyncStatus

__all__ = [
    "CacheEntry",
    "SyncOptions",
    "SyncState",
    "SyncStatus",
]
