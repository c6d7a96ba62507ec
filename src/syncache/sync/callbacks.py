"""Synchronizer callback protocol for observability and event hooks."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class SyncCallback(Protocol):
    """Protocol for fetch lifecycle callbacks.

    Implement this protocol to receive events while the synchronizer runs
    fetch cycles. Only the methods a callback defines are invoked, so
    implement just the ones you care about. Exceptions raised by a callback
    are logged and swallowed.
    """

    def on_fetch_start(self, key: str, attempt: int) -> None: ...
    def on_fetch_retry(self, key: str, attempt: int, delay: float, error: Exception) -> None: ...
    def on_fetch_success(self, key: str, attempts: int, time_ms: float) -> None: ...
    def on_fetch_error(self, key: str, error: Exception) -> None: ...
    def on_fetch_cancelled(self, key: str) -> None: ...
