"""Two-segment cache: a small, high-churn ``active`` segment and a ``lazy`` one.

Logic:
- New keys are written to ``active`` until it is full.
- When ``active`` is full, its hottest entry is promoted to ``lazy`` to
  make room, then the new key goes into ``active``.
- When both are full, the promotion only happens if the coldest entry of
  ``lazy`` is no newer or no more used than the promotion candidate; that
  lazy entry is then evicted. Otherwise ``active`` evicts its own coldest.
- Reads check ``lazy`` first, where a stable hot set accumulates.

Every operation touching both segments takes both write locks, always
``active`` before ``lazy``.
"""

from __future__ import annotations

import itertools
from collections.abc import Hashable, Iterable, Iterator, Mapping
from contextlib import contextmanager
from typing import Generic, TypeVar

import structlog

from lrucacher.basic import BasicCache, select_coldest, select_hottest, to_ranked
from lrucacher.clock import Clock
from lrucacher.exceptions import InvalidConfigError
from lrucacher.types import Entry, Predicate, Ranked, SegmentView

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

logger = structlog.get_logger()


def split_capacity(capacity: int, active_rate: float) -> tuple[int, int]:
    """Split ``capacity`` into ``(active, lazy)`` segment capacities."""
    active = round(capacity * active_rate)
    lazy = capacity - active
    if active < 1 or lazy < 1:
        raise InvalidConfigError(
            f"capacity {capacity} at active_rate {active_rate} leaves an empty segment"
        )
    return active, lazy


def _check_rate(active_rate: float) -> float:
    if not 0 < active_rate < 1:
        raise InvalidConfigError(f"active_rate must be in (0, 1), got {active_rate!r}")
    return active_rate


def _should_swap(promoted: Entry[V], demoted: Entry[V]) -> bool:
    # Ties favor the swap.
    return demoted.last_tick <= promoted.last_tick or demoted.uses <= promoted.uses


class PartitionedCache(Generic[K, V]):
    """Thread-safe cache split into ``active`` and ``lazy`` segments.

    Args:
        capacity: Total number of entries across both segments (>= 2).
        active_rate: Share of ``capacity`` given to the active segment, in (0, 1).
        clock: Tick source shared by both segments.
    """

    def __init__(
        self,
        capacity: int,
        active_rate: float,
        *,
        clock: Clock | None = None,
    ) -> None:
        if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity < 2:
            raise InvalidConfigError(f"capacity must be an integer >= 2, got {capacity!r}")
        self._active_rate = _check_rate(active_rate)
        active_capacity, lazy_capacity = split_capacity(capacity, active_rate)
        self._capacity = capacity
        self._clock = clock if clock is not None else Clock()
        self._active: BasicCache[K, V] = BasicCache(active_capacity, clock=self._clock)
        self._lazy: BasicCache[K, V] = BasicCache(lazy_capacity, clock=self._clock)

    def __repr__(self) -> str:
        return (
            f"PartitionedCache(capacity={self._capacity}, "
            f"active_rate={self._active_rate}, len={len(self)})"
        )

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def active_rate(self) -> float:
        with self._both(read=True):
            return self._active_rate

    @property
    def active(self) -> BasicCache[K, V]:
        """The active segment. Mutating it directly bypasses the protocol."""
        return self._active

    @property
    def lazy(self) -> BasicCache[K, V]:
        """The lazy segment. Mutating it directly bypasses the protocol."""
        return self._lazy

    def set(self, key: K, value: V) -> None:
        """Insert or update ``key`` following the admission protocol."""
        active, lazy = self._active, self._lazy
        with self._both():
            if key in lazy._entries:
                lazy._set(key, value)
                return
            if key in active._entries or not active._is_full():
                active._set(key, value)
                return

            promoted_key, promoted = select_hottest(active._entries.items())  # type: ignore[misc]
            if not lazy._is_full():
                lazy._put(promoted_key, active._pop(promoted_key))
            else:
                demoted_key, demoted = select_coldest(lazy._entries.items())  # type: ignore[misc]
                if _should_swap(promoted, demoted):
                    lazy._pop(demoted_key)
                    lazy._put(promoted_key, active._pop(promoted_key))
            # Falls back to active's own eviction when nothing was promoted
            active._set(key, value)

    def get(self, key: K) -> tuple[V | None, bool]:
        """Look up ``key``, lazy segment first.

        A hit in the active segment may promote the active segment's
        hottest entry into lazy.
        """
        active, lazy = self._active, self._lazy
        with self._both():
            entry = lazy._entries.get(key)
            if entry is not None:
                entry.touch(self._clock.now())
                return entry.value, True

            entry = active._entries.get(key)
            if entry is None:
                return None, False
            entry.touch(self._clock.now())
            self._promote()
            return entry.value, True

    def peek(self, key: K) -> tuple[V | None, bool]:
        with self._both(read=True):
            entry = self._lazy._entries.get(key) or self._active._entries.get(key)
            if entry is None:
                return None, False
            return entry.value, True

    def delete(self, key: K) -> None:
        with self._both():
            self._active._entries.pop(key, None)
            self._lazy._entries.pop(key, None)

    def delete_many(self, keys: Iterable[K]) -> int:
        keys = list(keys)
        with self._both():
            return self._active._delete_many(keys) + self._lazy._delete_many(keys)

    def delete_where(self, predicate: Predicate) -> int:
        """Remove matching entries from both segments.

        The predicate runs under both write locks and must not call back
        into this cache.
        """
        with self._both():
            return self._active._delete_where(predicate) + self._lazy._delete_where(predicate)

    def delete_lazy(self, key: K) -> None:
        """Remove ``key`` from the lazy segment only."""
        self._lazy.delete(key)

    def delete_lazy_many(self, keys: Iterable[K]) -> int:
        """Remove ``keys`` from the lazy segment only."""
        return self._lazy.delete_many(keys)

    def clear(self) -> None:
        with self._both():
            self._active._entries.clear()
            self._lazy._entries.clear()

    def is_full(self) -> bool:
        """True only when both segments are full."""
        with self._both(read=True):
            return self._active._is_full() and self._lazy._is_full()

    def keys(self) -> list[K]:
        with self._both(read=True):
            return [*self._active._entries, *self._lazy._entries]

    def values(self) -> list[V]:
        with self._both(read=True):
            return [entry.value for _, entry in self._items()]

    def snapshot(self) -> dict[K, Entry[V]]:
        with self._both(read=True):
            return {key: entry.copy() for key, entry in self._items()}

    def to_dict(self) -> dict[K, V]:
        with self._both(read=True):
            return {key: entry.value for key, entry in self._items()}

    def segment_snapshot(self) -> SegmentView[dict[K, Entry[V]]]:
        with self._both(read=True):
            return SegmentView(
                active={k: e.copy() for k, e in self._active._entries.items()},
                lazy={k: e.copy() for k, e in self._lazy._entries.items()},
            )

    def segment_keys(self) -> SegmentView[list[K]]:
        with self._both(read=True):
            return SegmentView(active=list(self._active._entries), lazy=list(self._lazy._entries))

    def segment_values(self) -> SegmentView[list[V]]:
        with self._both(read=True):
            return SegmentView(
                active=[e.value for e in self._active._entries.values()],
                lazy=[e.value for e in self._lazy._entries.values()],
            )

    def coldest(self) -> Ranked[K] | None:
        with self._both(read=True):
            return to_ranked(select_coldest(self._items()))

    def hottest(self) -> Ranked[K] | None:
        with self._both(read=True):
            return to_ranked(select_hottest(self._items()))

    def bulk_insert(self, entries: Mapping[K, Entry[V]]) -> dict[K, Entry[V]]:
        """Insert ``entries`` verbatim.

        A key already held is replaced in its segment. A new key goes to
        active while it has room, then to lazy, and otherwise displaces the
        coldest entry of active. Displaced entries are returned.
        """
        active, lazy = self._active, self._lazy
        evicted: dict[K, Entry[V]] = {}
        with self._both():
            for key, entry in entries.items():
                entry = entry.copy()
                if key in lazy._entries:
                    lazy._entries[key] = entry
                elif key in active._entries or not active._is_full():
                    active._entries[key] = entry
                elif not lazy._is_full():
                    lazy._entries[key] = entry
                else:
                    displaced = active._put(key, entry)
                    if displaced is not None:
                        evicted[displaced[0]] = displaced[1]
        return evicted

    def adjust_rate(self, active_rate: float) -> bool:
        """Move the split halfway toward ``active_rate``.

        The shrinking segment's coldest entries move to the growing one with
        their metadata intact. Returns True if the segment capacities changed.
        """
        _check_rate(active_rate)
        active, lazy = self._active, self._lazy
        with self._both():
            old_rate = self._active_rate
            rate = old_rate - (old_rate - active_rate) / 2
            try:
                active_capacity, lazy_capacity = split_capacity(self._capacity, rate)
            except InvalidConfigError:
                return False
            if active_capacity == active._capacity:
                return False

            if active_capacity > active._capacity:
                active._resize(active_capacity)
                active._bulk_insert(lazy._resize(lazy_capacity))
            else:
                lazy._resize(lazy_capacity)
                lazy._bulk_insert(active._resize(active_capacity))
            self._active_rate = rate

        log = logger.bind(cache="partitioned", capacity=self._capacity)
        log.info(
            "cache.rate_adjusted",
            old_rate=old_rate,
            new_rate=rate,
            active_capacity=active_capacity,
            lazy_capacity=lazy_capacity,
        )
        return True

    def __len__(self) -> int:
        with self._both(read=True):
            return len(self._active._entries) + len(self._lazy._entries)

    def __contains__(self, key: object) -> bool:
        with self._both(read=True):
            return key in self._lazy._entries or key in self._active._entries

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    @contextmanager
    def _both(self, *, read: bool = False) -> Iterator[None]:
        """Lock both segments, active first."""
        if read:
            with self._active._lock.read(), self._lazy._lock.read():
                yield
        else:
            with self._active._lock.write(), self._lazy._lock.write():
                yield

    def _items(self) -> Iterator[tuple[K, Entry[V]]]:
        return itertools.chain(self._active._entries.items(), self._lazy._entries.items())

    def _promote(self) -> None:
        """Move active's hottest entry to lazy if it earns the slot."""
        active, lazy = self._active, self._lazy
        promoted_key, promoted = select_hottest(active._entries.items())  # type: ignore[misc]
        if lazy._is_full():
            demoted_key, demoted = select_coldest(lazy._entries.items())  # type: ignore[misc]
            if not _should_swap(promoted, demoted):
                return
            lazy._pop(demoted_key)
        lazy._put(promoted_key, active._pop(promoted_key))


__all__ = ["PartitionedCache", "split_capacity"]
