"""Caches with a periodic reaper.

The reaper calls ``inner.delete_where(predicate)`` every period. The sync
wrapper runs it on a daemon thread, the async one as an asyncio task.
"""

from __future__ import annotations

import asyncio
import threading
import weakref
from collections.abc import Hashable, Iterable, Mapping
from contextlib import suppress
from types import TracebackType
from typing import Any, Generic, TypeVar

import structlog

from lrucacher.base import Cache
from lrucacher.clock import Clock
from lrucacher.duration import positive_duration
from lrucacher.types import Duration, Entry, Predicate, Ranked

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

logger = structlog.get_logger()


def stale_by_age(max_age: Duration, clock: Clock) -> Predicate:
    """Predicate matching entries whose last use is older than ``max_age``."""
    max_age_us = positive_duration(max_age, "max_age") * 1000

    def is_stale(key: object, entry: Entry[object]) -> bool:
        return clock.micros() - entry.last_tick.micros > max_age_us

    return is_stale


def _reap(cache: Cache[K, V], predicate: Predicate, log: Any = logger) -> int:
    """Run one reaper pass, logging instead of raising."""
    try:
        removed = cache.delete_where(predicate)
    except Exception:
        log.exception("reaper.pass_failed")
        return 0
    if removed:
        log.debug("reaper.pass", removed=removed)
    return removed


def _reap_forever(
    cache: Cache[K, V], predicate: Predicate, period: float, stop: threading.Event
) -> None:
    log = logger.bind(reaper="thread", period=period)
    log.debug("reaper.started")
    while not stop.wait(period):
        _reap(cache, predicate, log)
    log.debug("reaper.stopped")


async def _reap_periodically(cache: Cache[K, V], predicate: Predicate, period: float) -> None:
    log = logger.bind(reaper="asyncio", period=period)
    log.debug("reaper.started")
    try:
        while True:
            await asyncio.sleep(period)
            await asyncio.to_thread(_reap, cache, predicate, log)
    finally:
        log.debug("reaper.stopped")


class _ReapedCache(Generic[K, V]):
    """Delegates cache operations to ``inner``."""

    def __init__(self, inner: Cache[K, V], period: Duration, predicate: Predicate) -> None:
        self._inner = inner
        self._period = positive_duration(period, "period") / 1000
        self._predicate = predicate

    @property
    def inner(self) -> Cache[K, V]:
        """The wrapped cache, for variant-specific operations."""
        return self._inner

    @property
    def period(self) -> float:
        """Seconds between reaper passes."""
        return self._period

    @property
    def clock(self) -> Clock:
        return self._inner.clock

    @property
    def capacity(self) -> int:
        return self._inner.capacity

    def run_once(self) -> int:
        """Apply the predicate now. Returns the number of entries removed."""
        return self._inner.delete_where(self._predicate)

    def set(self, key: K, value: V) -> None:
        self._inner.set(key, value)

    def get(self, key: K) -> tuple[V | None, bool]:
        return self._inner.get(key)

    def peek(self, key: K) -> tuple[V | None, bool]:
        return self._inner.peek(key)

    def delete(self, key: K) -> None:
        self._inner.delete(key)

    def delete_many(self, keys: Iterable[K]) -> int:
        return self._inner.delete_many(keys)

    def delete_where(self, predicate: Predicate) -> int:
        return self._inner.delete_where(predicate)

    def clear(self) -> None:
        self._inner.clear()

    def is_full(self) -> bool:
        return self._inner.is_full()

    def keys(self) -> list[K]:
        return self._inner.keys()

    def values(self) -> list[V]:
        return self._inner.values()

    def snapshot(self) -> dict[K, Entry[V]]:
        return self._inner.snapshot()

    def to_dict(self) -> dict[K, V]:
        return self._inner.to_dict()

    def coldest(self) -> Ranked[K] | None:
        return self._inner.coldest()

    def hottest(self) -> Ranked[K] | None:
        return self._inner.hottest()

    def bulk_insert(self, entries: Mapping[K, Entry[V]]) -> dict[K, Entry[V]]:
        return self._inner.bulk_insert(entries)

    def __len__(self) -> int:
        return len(self._inner)

    def __contains__(self, key: object) -> bool:
        return key in self._inner


class TimedCache(_ReapedCache[K, V]):
    """Cache wrapper with a reaper thread.

    The thread only references the inner cache, so dropping the wrapper
    stops the reaper; ``close()`` stops it and waits for it to exit.

    Args:
        inner: Cache to reap.
        period: Time between passes ("1s", milliseconds, or timedelta).
        predicate: ``(key, entry) -> bool``; matching entries are removed.
        start: Start the reaper immediately.
    """

    def __init__(
        self,
        inner: Cache[K, V],
        period: Duration,
        predicate: Predicate,
        *,
        start: bool = True,
    ) -> None:
        super().__init__(inner, period, predicate)
        self._stop = threading.Event()
        self._thread = threading.Thread(
            target=_reap_forever,
            args=(inner, predicate, self._period, self._stop),
            name="lrucacher-reaper",
            daemon=True,
        )
        self._finalizer = weakref.finalize(self, self._stop.set)
        if start:
            self.start()

    def start(self) -> None:
        """Start the reaper thread."""
        if self._stop.is_set():
            raise RuntimeError("reaper is closed")
        if not self._thread.is_alive():
            self._thread.start()

    @property
    def closed(self) -> bool:
        return self._stop.is_set()

    def close(self) -> None:
        """Stop the reaper and wait for the thread to exit."""
        self._stop.set()
        self._finalizer.detach()
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join()

    def __enter__(self) -> TimedCache[K, V]:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


class AsyncTimedCache(_ReapedCache[K, V]):
    """Cache wrapper whose reaper is an asyncio task.

    Passes run in a worker thread so a large pass does not block the event
    loop. The task only references the inner cache, so dropping the wrapper
    cancels it. Use ``async with`` or ``start()``/``aclose()``.
    """

    def __init__(self, inner: Cache[K, V], period: Duration, predicate: Predicate) -> None:
        super().__init__(inner, period, predicate)
        self._task: asyncio.Task[None] | None = None
        self._finalizer: weakref.finalize | None = None

    def start(self) -> None:
        """Schedule the reaper on the running event loop."""
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(
                _reap_periodically(self._inner, self._predicate, self._period)
            )
            self._finalizer = weakref.finalize(self, self._task.cancel)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def aclose(self) -> None:
        """Cancel the reaper task and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        if self._finalizer is not None:
            self._finalizer.detach()
            self._finalizer = None
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task

    async def __aenter__(self) -> AsyncTimedCache[K, V]:
        self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()


__all__ = ["AsyncTimedCache", "TimedCache", "stale_by_age"]
