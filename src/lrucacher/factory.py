"""Constructors for each cache variant."""

from __future__ import annotations

from collections.abc import Hashable
from typing import Any, TypeVar

from lrucacher.base import Cache
from lrucacher.basic import BasicCache
from lrucacher.clock import Clock
from lrucacher.partitioned import PartitionedCache
from lrucacher.timed import AsyncTimedCache, TimedCache, stale_by_age
from lrucacher.types import Duration, Predicate

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


def new_basic(capacity: int, *, clock: Clock | None = None) -> BasicCache[Any, Any]:
    """Create a bounded cache.

    Args:
        capacity: Maximum number of entries (>= 1)
        clock: Optional tick source

    Returns:
        BasicCache instance
    """
    return BasicCache(capacity, clock=clock)


def new_partitioned(
    capacity: int,
    active_rate: float,
    *,
    clock: Clock | None = None,
) -> PartitionedCache[Any, Any]:
    """Create an active/lazy partitioned cache.

    Args:
        capacity: Total entries across both segments (>= 2)
        active_rate: Share of capacity for the active segment, in (0, 1)
        clock: Optional tick source shared by both segments

    Returns:
        PartitionedCache instance
    """
    return PartitionedCache(capacity, active_rate, clock=clock)


def new_timed(
    inner: Cache[K, V],
    period: Duration,
    predicate: Predicate,
) -> TimedCache[K, V]:
    """Wrap ``inner`` with a reaper thread applying ``predicate`` every ``period``.

    Args:
        inner: Cache to reap (basic or partitioned)
        period: Time between passes ("500ms", "1s", milliseconds or timedelta)
        predicate: ``(key, entry) -> bool``; matching entries are removed

    Returns:
        Running TimedCache; call ``close()`` (or use ``with``) to stop it
    """
    return TimedCache(inner, period, predicate)


def new_elapsed(
    inner: Cache[K, V],
    period: Duration,
    max_age: Duration,
) -> TimedCache[K, V]:
    """Wrap ``inner`` with a reaper removing entries unused for ``max_age``.

    Args:
        inner: Cache to reap
        period: Time between passes
        max_age: Entries whose last use is older than this are removed

    Returns:
        Running TimedCache
    """
    return TimedCache(inner, period, stale_by_age(max_age, inner.clock))


def new_async_timed(
    inner: Cache[K, V],
    period: Duration,
    predicate: Predicate,
) -> AsyncTimedCache[K, V]:
    """Async variant of ``new_timed``; start it with ``async with`` or ``start()``."""
    return AsyncTimedCache(inner, period, predicate)


def new_async_elapsed(
    inner: Cache[K, V],
    period: Duration,
    max_age: Duration,
) -> AsyncTimedCache[K, V]:
    """Async variant of ``new_elapsed``."""
    return AsyncTimedCache(inner, period, stale_by_age(max_age, inner.clock))


__all__ = [
    "new_async_elapsed",
    "new_async_timed",
    "new_basic",
    "new_elapsed",
    "new_partitioned",
    "new_timed",
]
