"""Shared fixtures for syncache tests."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from syncache.cache.store import InMemoryCacheStore
from syncache.models.options import SyncOptions
from syncache.models.state import SyncState
from syncache.sync.subscription import Subscription


class FakeClock:
    """A manually advanced clock for deterministic TTL tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSource:
    """Scripted fetch function.

    Each call consumes the next outcome; the last outcome repeats once the
    script runs out. Exceptions (instances or classes) are raised, anything
    else is returned.
    """

    def __init__(self, *outcomes: Any, delay: float = 0.0) -> None:
        if not outcomes:
            msg = "FakeSource needs at least one outcome"
            raise ValueError(msg)
        self._outcomes = list(outcomes)
        self._delay = delay
        self.calls = 0
        self.completed = 0

    async def __call__(self) -> Any:
        self.calls += 1
        outcome = self._outcomes[min(self.calls - 1, len(self._outcomes) - 1)]
        if self._delay:
            await asyncio.sleep(self._delay)
        if isinstance(outcome, type) and issubclass(outcome, BaseException):
            raise outcome(f"call {self.calls} failed")
        if isinstance(outcome, BaseException):
            raise outcome
        self.completed += 1
        return outcome


class GatedSource:
    """Fetch function that blocks until released, recording cancellation."""

    def __init__(self, value: Any) -> None:
        self.value = value
        self.calls = 0
        self.cancelled = 0
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def __call__(self) -> Any:
        self.calls += 1
        self.started.set()
        try:
            await self.release.wait()
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        return self.value


class RecordingCallback:
    """A SyncCallback that records every event it receives."""

    def __init__(self) -> None:
        self.events: list[tuple[Any, ...]] = []

    def names(self) -> list[str]:
        return [event[0] for event in self.events]

    def on_fetch_start(self, key: str, attempt: int) -> None:
        self.events.append(("start", key, attempt))

    def on_fetch_retry(self, key: str, attempt: int, delay: float, error: Exception) -> None:
        self.events.append(("retry", key, attempt, delay, error))

    def on_fetch_success(self, key: str, attempts: int, time_ms: float) -> None:
        self.events.append(("success", key, attempts))

    def on_fetch_error(self, key: str, error: Exception) -> None:
        self.events.append(("error", key, error))

    def on_fetch_cancelled(self, key: str) -> None:
        self.events.append(("cancelled", key))


async def next_state(sub: Subscription, timeout: float = 2.0) -> SyncState:
    """Await the next state delivered to ``sub``."""
    return await asyncio.wait_for(anext(sub), timeout=timeout)


async def settle(sub: Subscription, timeout: float = 2.0) -> SyncState:
    """Await states until one is not loading and return it."""
    while True:
        state = await next_state(sub, timeout=timeout)
        if not state.loading:
            return state


def fast_options(**overrides: Any) -> SyncOptions:
    """SyncOptions with near-zero backoff so retry tests run quickly."""
    params: dict[str, Any] = {"retry_base_delay": 0.001}
    params.update(overrides)
    return SyncOptions(**params)


@pytest.fixture
def clock() -> FakeClock:
    """Return a FakeClock starting at t=1000."""
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> InMemoryCacheStore:
    """Return an InMemoryCacheStore driven by the fake clock."""
    return InMemoryCacheStore(clock=clock)


class RecordingStore(InMemoryCacheStore):
    """InMemoryCacheStore that records every ``set`` call."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.writes: list[tuple[str, Any]] = []

    def set(self, key: str, value: Any):  # type: ignore[no-untyped-def]
        self.writes.append((key, value))
        return super().set(key, value)
