"""Custom exceptions for syncache."""

from __future__ import annotations

__all__ = [
    "SyncCacheError",
    "SynchronizerClosedError",
    "TerminalFetchError",
    "TransientFetchError",
    "UnknownKeyError",
]


class SyncCacheError(Exception):
    """Base exception for all syncache errors."""


class TransientFetchError(SyncCacheError):
    """A failed fetch attempt that still has retries left.

    Only handed to ``SyncCallback.on_fetch_retry``; never surfaced to consumers.
    """

    def __init__(self, key: str, attempt: int, error: BaseException) -> None:
        super().__init__(f"Attempt {attempt + 1} for {key!r} failed: {error}")
        self.key = key
        self.attempt = attempt
        self.error = error


class TerminalFetchError(SyncCacheError):
    """Raised when every attempt of a fetch cycle has failed.

    The last underlying exception is available as ``error`` and ``__cause__``.
    """

    def __init__(self, key: str, attempts: int, error: BaseException) -> None:
        super().__init__(f"Fetch for {key!r} failed after {attempts} attempt(s): {error}")
        self.key = key
        self.attempts = attempts
        self.error = error


class UnknownKeyError(SyncCacheError, KeyError):
    """Raised when a key is refreshed before any fetch function was registered for it."""

    def __init__(self, key: str) -> None:
        super().__init__(f"No fetch function registered for {key!r}")
        self.key = key

    def __str__(self) -> str:
        return str(self.args[0])


class SynchronizerClosedError(SyncCacheError):
    """Raised by ``refresh`` and ``subscribe`` once the synchronizer is closed.

    A ``refresh`` still waiting when ``close`` runs gets this instead of the
    cancellation of its fetch.
    """

    def __init__(self, key: str) -> None:
        super().__init__(f"Synchronizer closed while handling {key!r}")
        self.key = key
