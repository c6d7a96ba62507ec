"""Synchronizer -- fetch orchestration on top of a cache store."""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from types import TracebackType
from typing import Any

from syncache.cache.store import InMemoryCacheStore
from syncache.exceptions import (
    SynchronizerClosedError,
    TerminalFetchError,
    TransientFetchError,
    UnknownKeyError,
)
from syncache.models.entry import CacheEntry
from syncache.models.options import SyncOptions
from syncache.models.state import SyncState
from syncache.protocols.store import CacheStore
from syncache.sync.callbacks import SyncCallback
from syncache.sync.subscription import StateHandler, Subscription

logger = logging.getLogger(__name__)

FetchFn = Callable[[], Awaitable[Any]]


@dataclass(eq=False)
class _FetchTask:
    """One in-flight fetch cycle for one key."""

    key: str
    fetch_fn: FetchFn
    options: SyncOptions
    generation: int
    task: asyncio.Task[Any] | None = None
    attempt: int = 0
    refreshers: int = 0
    successor: _FetchTask | None = None

    @property
    def active(self) -> bool:
        return self.task is not None and not self.task.done()


class Synchronizer:
    """Fetches, caches and revalidates data per key for many consumers.

    Usage::

        sync = Synchronizer(options=SyncOptions(ttl=120))

        sub = sync.subscribe("clients", fetch_clients)
        async for state in sub:
            if state.error is not None:
                show_error(state.error, fallback=state.data)
            elif state.has_data:
                show(state.data, outdated=state.stale)

        await sync.refresh("clients")
        sub.close()

    Guarantees, per key:
        - at most one fetch cycle is active; starting another cancels the
          previous one first (single-flight),
        - a cancelled cycle never writes to the store nor emits a state,
        - failed attempts are retried with exponential backoff and only
          the final failure reaches consumers, as ``TerminalFetchError``.

    Keys proceed independently. The synchronizer is bound to the event
    loop it is used from and is not itself thread-safe; the store it holds
    may be shared across threads.

    Parameters:
        store: The cache store to read and write. A fresh
            ``InMemoryCacheStore`` is created if not provided.
        options: Default ``SyncOptions``; per-call options override
            the fields they set.
        callbacks: Lifecycle callbacks (see ``SyncCallback``).
    """

    def __init__(
        self,
        store: CacheStore | None = None,
        options: SyncOptions | None = None,
        callbacks: list[SyncCallback] | None = None,
    ) -> None:
        self._store: CacheStore = store if store is not None else InMemoryCacheStore()
        self._options = options or SyncOptions()
        self._callbacks: list[SyncCallback] = list(callbacks or [])
        self._tasks: dict[str, _FetchTask] = {}
        self._sources: dict[str, tuple[FetchFn, SyncOptions]] = {}
        self._subscriptions: dict[str, set[Subscription]] = {}
        self._generations = itertools.count(1)
        self._closed = False

    # -- Read-only properties --

    @property
    def store(self) -> CacheStore:
        """The underlying cache store."""
        return self._store

    @property
    def options(self) -> SyncOptions:
        """The default options applied when a call passes none."""
        return self._options

    def __repr__(self) -> str:
        return (
            f"Synchronizer(store={self._store!r}, "
            f"active_fetches={len(self.active_keys())}, "
            f"subscribed_keys={len(self._subscriptions)})"
        )

    def add_callback(self, callback: SyncCallback) -> Synchronizer:
        """Register a lifecycle callback. Returns self for chaining."""
        self._callbacks.append(callback)
        return self

    # -- Consumer API --

    def subscribe(
        self,
        key: str,
        fetch_fn: FetchFn,
        options: SyncOptions | None = None,
        on_state: StateHandler | None = None,
    ) -> Subscription:
        """Open a subscription to ``key``.

        The cache is consulted immediately and the first state is delivered
        before this method returns:

        - fresh hit: the cached value, no fetch is made,
        - stale hit with stale-while-revalidate: the cached value flagged
          stale, then a background fetch,
        - otherwise: a loading state, then a fetch.

        Fetch failures are never raised from here; they arrive as states.
        Must be called while an event loop is running.

        Parameters:
            key: The cache key.
            fetch_fn: Zero-argument coroutine function producing the value.
            options: Overrides for the synchronizer's default options.
            on_state: Optional handler invoked with every delivered state.

        Returns:
            The subscription handle. The caller must close it.
        """
        self._check_open(key)
        opts = self._options.merged(options)
        self._sources[key] = (fetch_fn, opts)

        sub = Subscription(key, on_state=on_state, on_close=self._detach)
        self._subscriptions.setdefault(key, set()).add(sub)

        entry = self._store.get(key, ttl=opts.ttl)
        if entry is not None and not entry.stale:
            logger.debug("Fresh hit for %r", key)
            sub.deliver(SyncState.from_entry(key, entry))
            return sub

        if entry is not None and opts.stale_while_revalidate:
            logger.debug("Stale hit for %r, revalidating in background", key)
            sub.deliver(SyncState.from_entry(key, entry, stale=True))
        else:
            logger.debug("Miss for %r, fetching", key)
            sub.deliver(SyncState(key=key, loading=True))

        self._start_fetch(key, fetch_fn, opts)
        return sub

    async def refresh(
        self,
        key: str,
        fetch_fn: FetchFn | None = None,
        options: SyncOptions | None = None,
    ) -> Any:
        """Force a fetch for ``key``, ignoring freshness.

        Any fetch already active for the key is cancelled and superseded.
        If this refresh is itself superseded before it settles, it resolves
        with the outcome of the fetch that replaced it.

        Parameters:
            key: The cache key.
            fetch_fn: Fetch function to use. Defaults to the one last
                registered for the key by ``subscribe`` or ``refresh``.
            options: Overrides for the options registered for the key.

        Returns:
            The freshly fetched value.

        Raises:
            UnknownKeyError: No fetch function is known for the key.
            TerminalFetchError: Every attempt failed.
            SynchronizerClosedError: The synchronizer was closed before the
                fetch settled.
        """
        self._check_open(key)
        source = self._sources.get(key)
        if fetch_fn is None:
            if source is None:
                raise UnknownKeyError(key)
            fetch_fn = source[0]
        base = source[1] if source is not None else self._options
        opts = base.merged(options)
        self._sources[key] = (fetch_fn, opts)

        entry = self._store.get(key, ttl=opts.ttl)
        if entry is not None:
            current = SyncState.from_entry(key, entry)
            self._broadcast(key, current.model_copy(update={"loading": True}))
        else:
            self._broadcast(key, SyncState(key=key, loading=True))

        fetch = self._start_fetch(key, fetch_fn, opts)
        fetch.refreshers += 1
        return await self._await_outcome(fetch)

    def invalidate(self, key: str) -> bool:
        """Mark ``key`` stale, keeping its value. Does not start a fetch.

        Open subscriptions receive the value flagged stale.

        Returns:
            True if the key had a cached value.
        """
        found = self._store.invalidate(key)
        if found:
            entry = self._store.get(key)
            if entry is not None:
                self._broadcast(key, SyncState.from_entry(key, entry))
        return found

    def invalidate_prefix(self, prefix: str) -> int:
        """Mark every key starting with ``prefix`` stale.

        Returns:
            The number of cached keys marked.
        """
        count = self._store.invalidate_prefix(prefix)
        for key in [k for k in self._subscriptions if k.startswith(prefix)]:
            entry = self._store.get(key)
            if entry is not None:
                self._broadcast(key, SyncState.from_entry(key, entry))
        logger.debug("Invalidated %d key(s) with prefix %r", count, prefix)
        return count

    def mutate(self, key: str, updater: Callable[[Any], Any] | Any) -> Any:
        """Update the cached value locally, without fetching.

        Active fetches are left alone: if one completes afterwards, its
        value replaces the mutation.

        Parameters:
            key: The cache key.
            updater: Callable ``(previous_value | None) -> new_value`` or
                the replacement value.

        Returns:
            The new cached value.
        """
        entry = self._store.mutate(key, updater)
        self._broadcast(key, SyncState.from_entry(key, entry))
        return entry.value

    async def optimistic_update(
        self,
        key: str,
        updater: Callable[[Any], Any] | Any,
        write_fn: Callable[[Any], Awaitable[Any]],
        *,
        invalidate_after: bool = True,
    ) -> Any:
        """Apply a local update immediately, then persist it remotely.

        The optimistic value is visible to subscribers while ``write_fn``
        runs. If the write fails the previous value is restored (or the
        entry removed when there was none) and the error re-raised.

        Parameters:
            key: The cache key.
            updater: Same as for ``mutate``.
            write_fn: Coroutine function receiving the optimistic value and
                performing the remote write.
            invalidate_after: Mark the key stale once the write settles so
                the next read refetches the authoritative value.

        Returns:
            Whatever ``write_fn`` returned.
        """
        snapshot = self._store.get(key)
        optimistic = self.mutate(key, updater)
        try:
            return await write_fn(optimistic)
        except asyncio.CancelledError:
            logger.debug("Optimistic update for %r cancelled, rolling back", key)
            self._rollback(key, snapshot)
            raise
        except Exception:
            logger.warning("Optimistic update for %r failed, rolling back", key, exc_info=True)
            self._rollback(key, snapshot)
            raise
        finally:
            if invalidate_after:
                self.invalidate(key)

    def peek(self, key: str, ttl: float | None = None) -> CacheEntry | None:
        """Read the cached entry for ``key`` without fetching.

        ``ttl`` defaults to the one registered for the key, if any.
        """
        if ttl is None and key in self._sources:
            ttl = self._sources[key][1].ttl
        return self._store.get(key, ttl=ttl)

    def is_fetching(self, key: str) -> bool:
        """Whether a fetch cycle is currently active for ``key``."""
        fetch = self._tasks.get(key)
        return fetch is not None and fetch.active

    def active_keys(self) -> list[str]:
        """Keys with an active fetch cycle."""
        return [key for key, fetch in self._tasks.items() if fetch.active]

    async def close(self) -> None:
        """Cancel every active fetch and close every subscription."""
        self._closed = True
        tasks = [fetch.task for fetch in self._tasks.values() if fetch.task is not None]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        for subs in list(self._subscriptions.values()):
            for sub in list(subs):
                sub.close()
        self._tasks.clear()
        self._sources.clear()
        logger.debug("Synchronizer closed (%d fetch(es) cancelled)", len(tasks))

    async def __aenter__(self) -> Synchronizer:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    # -- Fetch lifecycle --

    def _start_fetch(self, key: str, fetch_fn: FetchFn, options: SyncOptions) -> _FetchTask:
        """Begin a new fetch cycle for ``key``, cancelling any active one first."""
        loop = asyncio.get_running_loop()
        fetch = _FetchTask(
            key=key,
            fetch_fn=fetch_fn,
            options=options,
            generation=next(self._generations),
        )
        previous = self._tasks.get(key)
        if previous is not None and previous.active:
            logger.debug(
                "Fetch #%d for %r superseded by #%d", previous.generation, key, fetch.generation
            )
            fetch.refreshers = previous.refreshers
            previous.successor = fetch
            previous.task.cancel()  # type: ignore[union-attr]

        self._tasks[key] = fetch
        fetch.task = loop.create_task(self._run(fetch), name=f"syncache-fetch:{key}")
        fetch.task.add_done_callback(lambda _task: self._on_task_done(fetch))
        return fetch

    async def _run(self, fetch: _FetchTask) -> Any:
        key = fetch.key
        started = time.perf_counter()
        try:
            value = await self._fetch_with_retry(fetch)
        except TerminalFetchError as exc:
            if self._is_current(fetch):
                self._fail(fetch, exc)
            raise

        if not self._is_current(fetch):
            return value
        entry = self._store.set(key, value)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.debug("Fetched %r in %.1fms (%d attempt(s))", key, elapsed_ms, fetch.attempt + 1)
        self._fire("on_fetch_success", key, fetch.attempt + 1, elapsed_ms)
        self._broadcast(key, SyncState.from_entry(key, entry))
        return value

    async def _fetch_with_retry(self, fetch: _FetchTask) -> Any:
        """Call the fetch function until it succeeds or attempts run out.

        Both the fetch call and the backoff sleep are cancellation points.
        """
        key, opts = fetch.key, fetch.options
        while True:
            self._fire("on_fetch_start", key, fetch.attempt)
            try:
                return await fetch.fetch_fn()
            except Exception as exc:
                attempts = fetch.attempt + 1
                if attempts >= opts.max_retries:
                    logger.warning(
                        "Fetch for %r failed after %d attempt(s): %s", key, attempts, exc
                    )
                    raise TerminalFetchError(key, attempts, exc) from exc
                delay = opts.backoff_delay(fetch.attempt)
                logger.debug(
                    "Attempt %d for %r failed (%s), retrying in %.3fs", attempts, key, exc, delay
                )
                self._fire(
                    "on_fetch_retry",
                    key,
                    fetch.attempt,
                    delay,
                    TransientFetchError(key, fetch.attempt, exc),
                )
            await asyncio.sleep(delay)
            fetch.attempt += 1

    def _fail(self, fetch: _FetchTask, error: TerminalFetchError) -> None:
        """Report a terminal failure, keeping the last usable value visible."""
        key, opts = fetch.key, fetch.options
        self._fire("on_fetch_error", key, error)
        entry = self._store.get(key, ttl=opts.ttl)
        if entry is not None and opts.stale_while_revalidate:
            state = SyncState.from_entry(key, entry, stale=True, error=error)
        else:
            state = SyncState(key=key, error=error)
        self._broadcast(key, state)

    def _on_task_done(self, fetch: _FetchTask) -> None:
        task = fetch.task
        if self._tasks.get(fetch.key) is fetch:
            del self._tasks[fetch.key]
            self._prune_sources()
        if task is None:
            return
        if task.cancelled():
            logger.debug("Fetch #%d for %r cancelled", fetch.generation, fetch.key)
            self._fire("on_fetch_cancelled", fetch.key)
            return
        # Terminal errors were already delivered as states.
        task.exception()

    async def _await_outcome(self, fetch: _FetchTask) -> Any:
        """Wait for ``fetch``, following successors when it gets superseded."""
        current = fetch
        try:
            while True:
                try:
                    return await asyncio.shield(current.task)  # type: ignore[arg-type]
                except asyncio.CancelledError:
                    caller = asyncio.current_task()
                    if caller is not None and caller.cancelling():
                        raise
                    if current.successor is None:
                        if self._closed:
                            raise SynchronizerClosedError(fetch.key) from None
                        raise
                    current = current.successor
        finally:
            current.refreshers -= 1
            self._release(current)

    def _release(self, fetch: _FetchTask) -> None:
        """Cancel ``fetch`` if no subscription or refresh caller is waiting on it."""
        if not fetch.active or fetch.refreshers > 0:
            return
        if self._subscriptions.get(fetch.key):
            return
        logger.debug("No one waiting on fetch #%d for %r, cancelling", fetch.generation, fetch.key)
        fetch.task.cancel()  # type: ignore[union-attr]

    def _detach(self, sub: Subscription) -> None:
        subs = self._subscriptions.get(sub.key)
        if subs is not None:
            subs.discard(sub)
            if not subs:
                del self._subscriptions[sub.key]
        fetch = self._tasks.get(sub.key)
        if fetch is not None:
            self._release(fetch)
        self._prune_sources()

    # -- Helpers --

    def _check_open(self, key: str) -> None:
        if self._closed:
            raise SynchronizerClosedError(key)

    def _prune_sources(self) -> None:
        """Forget fetch functions for keys nobody follows and the store dropped."""
        stale = [
            key
            for key in self._sources
            if key not in self._subscriptions
            and key not in self._tasks
            and key not in self._store
        ]
        for key in stale:
            del self._sources[key]
        if stale:
            logger.debug("Forgot fetch function(s) for %d evicted key(s)", len(stale))

    def _is_current(self, fetch: _FetchTask) -> bool:
        return self._tasks.get(fetch.key) is fetch

    def _broadcast(self, key: str, state: SyncState) -> None:
        for sub in list(self._subscriptions.get(key, ())):
            sub.deliver(state)

    def _rollback(self, key: str, snapshot: CacheEntry | None) -> None:
        if snapshot is None:
            self._store.delete(key)
            self._broadcast(key, SyncState(key=key))
        else:
            self.mutate(key, lambda _current: snapshot.value)

    def _fire(self, method: str, *args: Any) -> None:
        """Invoke a hook on every callback that defines it; failures are logged."""
        for cb in self._callbacks:
            hook = getattr(cb, method, None)
            if hook is None:
                continue
            try:
                hook(*args)
            except Exception:
                logger.warning("Callback %r.%s failed for %r", cb, method, args[0], exc_info=True)
