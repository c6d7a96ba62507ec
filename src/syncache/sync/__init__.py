"""Fetch orchestration: subscriptions, refresh, retry and single-flight."""

from .callbacks import SyncCallback
from .subscription import Subscription
from .synchronizer import FetchFn, Synchronizer

__all__ = [
    "FetchFn",
    "Subscription",
    "SyncCallback",
    "Synchronizer",
]
