"""Explicit subscription handles returned by ``Synchronizer.subscribe``."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from types import TracebackType

from syncache.models.state import SyncState

logger = logging.getLogger(__name__)

StateHandler = Callable[[SyncState], None]

DEFAULT_MAX_PENDING = 64


class Subscription:
    """A consumer's view of one key: a stream of ``SyncState`` notifications.

    States can be consumed as an async iterator, through the optional
    ``on_state`` handler, or both. The handle must be closed explicitly
    (``close()`` or ``async with``); closing stops delivery, ends the
    iterator after any already-queued states, and lets the synchronizer
    cancel a fetch nobody is waiting on anymore.

    At most ``max_pending`` states wait for the iterator; when a consumer
    falls behind (or never iterates) the oldest queued state is dropped.
    The handler and ``latest`` always see every state.

    Usage::

        async with sync.subscribe("clients", fetch_clients) as sub:
            async for state in sub:
                render(state)
    """

    __slots__ = ("_closed", "_key", "_latest", "_on_close", "_on_state", "_queue")

    def __init__(
        self,
        key: str,
        on_state: StateHandler | None = None,
        on_close: Callable[[Subscription], None] | None = None,
        max_pending: int = DEFAULT_MAX_PENDING,
    ) -> None:
        if max_pending <= 0:
            msg = f"max_pending must be positive, got {max_pending}"
            raise ValueError(msg)
        self._key = key
        self._on_state = on_state
        self._on_close = on_close
        self._latest: SyncState | None = None
        self._closed = False
        self._queue: asyncio.Queue[SyncState | None] = asyncio.Queue(maxsize=max_pending)

    @property
    def key(self) -> str:
        """The cache key this subscription follows."""
        return self._key

    @property
    def latest(self) -> SyncState | None:
        """The most recently delivered state, or None before the first one."""
        return self._latest

    @property
    def closed(self) -> bool:
        return self._closed

    def deliver(self, state: SyncState) -> None:
        """Push a state to this subscription. Ignored once closed."""
        if self._closed:
            return
        self._latest = state
        self._enqueue(state)
        if self._on_state is not None:
            try:
                self._on_state(state)
            except Exception:
                logger.warning("State handler for %r failed", self._key, exc_info=True)

    def pending(self) -> list[SyncState]:
        """Drain and return the states queued but not yet iterated."""
        states: list[SyncState] = []
        while not self._queue.empty():
            state = self._queue.get_nowait()
            if state is None:
                # keep the end-of-stream marker for the iterator
                self._queue.put_nowait(None)
                break
            states.append(state)
        return states

    def _enqueue(self, item: SyncState | None) -> None:
        if self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(item)

    def close(self) -> None:
        """Stop receiving states. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._enqueue(None)
        if self._on_close is not None:
            self._on_close(self)

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> SyncState:
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        state = await self._queue.get()
        if state is None:
            raise StopAsyncIteration
        return state

    async def __aenter__(self) -> Subscription:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        status = self._latest.status if self._latest is not None else None
        return f"Subscription(key={self._key!r}, closed={self._closed}, status={status})"
