"""Bounded cache with an approximate LRU/LFU eviction policy.

Eviction picks the *coldest* entry: starting from the first entry, a
candidate replaces the current choice only when it is strictly older and
used no more often. A very old but heavily used entry therefore survives
a scan of fresh one-shot keys. The scan is O(n), which is fine for the
tens to low thousands of entries this cache is meant for.
"""

from __future__ import annotations

from collections.abc import Callable, Hashable, Iterable, Mapping
from typing import Generic, TypeVar

import structlog

from lrucacher.clock import Clock
from lrucacher.exceptions import InvalidConfigError
from lrucacher.locks import RWLock
from lrucacher.types import Entry, Predicate, Ranked

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

logger = structlog.get_logger()


def _colder(candidate: Entry[V], chosen: Entry[V]) -> bool:
    return candidate.last_tick < chosen.last_tick and candidate.uses <= chosen.uses


def _hotter(candidate: Entry[V], chosen: Entry[V]) -> bool:
    return candidate.last_tick > chosen.last_tick and candidate.uses >= chosen.uses


def _select(
    items: Iterable[tuple[K, Entry[V]]],
    better: Callable[[Entry[V], Entry[V]], bool],
) -> tuple[K, Entry[V]] | None:
    """Start from the first item and keep whichever ``better`` prefers."""
    it = iter(items)
    chosen = next(it, None)
    if chosen is None:
        return None
    for key, entry in it:
        if better(entry, chosen[1]):
            chosen = (key, entry)
    return chosen


def select_coldest(items: Iterable[tuple[K, Entry[V]]]) -> tuple[K, Entry[V]] | None:
    """Least recently and least frequently used item, or None if empty."""
    return _select(items, _colder)


def select_hottest(items: Iterable[tuple[K, Entry[V]]]) -> tuple[K, Entry[V]] | None:
    """Most recently and most frequently used item, or None if empty."""
    return _select(items, _hotter)


def to_ranked(selected: tuple[K, Entry[V]] | None) -> Ranked[K] | None:
    """Turn a ``select_*`` result into a detached ``Ranked`` record."""
    if selected is None:
        return None
    key, entry = selected
    return Ranked(key=key, tick=entry.last_tick, uses=entry.uses)


def _check_capacity(capacity: int) -> int:
    if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity < 1:
        raise InvalidConfigError(f"capacity must be a positive integer, got {capacity!r}")
    return capacity


class BasicCache(Generic[K, V]):
    """Thread-safe bounded cache.

    Args:
        capacity: Maximum number of entries (>= 1).
        clock: Tick source; a private clock is created when omitted.
    """

    def __init__(self, capacity: int, *, clock: Clock | None = None) -> None:
        self._capacity = _check_capacity(capacity)
        self._clock = clock if clock is not None else Clock()
        self._entries: dict[K, Entry[V]] = {}
        self._lock = RWLock()

    def __repr__(self) -> str:
        return f"BasicCache(capacity={self._capacity}, len={len(self)})"

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def capacity(self) -> int:
        with self._lock.read():
            return self._capacity

    def set(self, key: K, value: V) -> None:
        """Insert or update ``key``.

        Updating an existing key never evicts. Inserting into a full cache
        evicts exactly one coldest entry first, under the same write lock.
        """
        with self._lock.write():
            self._set(key, value)

    def get(self, key: K) -> tuple[V | None, bool]:
        """Return ``(value, True)`` on a hit, touching the entry, else ``(None, False)``."""
        with self._lock.write():
            entry = self._entries.get(key)
            if entry is None:
                return None, False
            entry.touch(self._clock.now())
            return entry.value, True

    def peek(self, key: K) -> tuple[V | None, bool]:
        """Like ``get`` but leaves the entry's metadata alone."""
        with self._lock.read():
            entry = self._entries.get(key)
            if entry is None:
                return None, False
            return entry.value, True

    def delete(self, key: K) -> None:
        with self._lock.write():
            self._entries.pop(key, None)

    def delete_many(self, keys: Iterable[K]) -> int:
        """Remove ``keys`` in one critical section. Returns how many were present."""
        with self._lock.write():
            return self._delete_many(keys)

    def delete_where(self, predicate: Predicate) -> int:
        """Remove every entry for which ``predicate(key, entry)`` is true.

        The predicate runs under the write lock and must not call back into
        this cache. Returns the number of entries removed.
        """
        with self._lock.write():
            return self._delete_where(predicate)

    def clear(self) -> None:
        with self._lock.write():
            self._entries.clear()

    def is_full(self) -> bool:
        with self._lock.read():
            return self._is_full()

    def keys(self) -> list[K]:
        with self._lock.read():
            return list(self._entries)

    def values(self) -> list[V]:
        with self._lock.read():
            return [entry.value for entry in self._entries.values()]

    def snapshot(self) -> dict[K, Entry[V]]:
        """Point-in-time copy of every entry, metadata included."""
        with self._lock.read():
            return {key: entry.copy() for key, entry in self._entries.items()}

    def to_dict(self) -> dict[K, V]:
        with self._lock.read():
            return {key: entry.value for key, entry in self._entries.items()}

    def coldest(self) -> Ranked[K] | None:
        """The entry the next eviction would remove, or None when empty."""
        with self._lock.read():
            return to_ranked(select_coldest(self._entries.items()))

    def hottest(self) -> Ranked[K] | None:
        """The most recent, most used entry, or None when empty."""
        with self._lock.read():
            return to_ranked(select_hottest(self._entries.items()))

    def resize(self, capacity: int) -> dict[K, Entry[V]]:
        """Change the capacity.

        Shrinking below the current size removes coldest entries one at a
        time until the cache fits. The removed entries are returned with
        their metadata so a caller can move them elsewhere.
        """
        _check_capacity(capacity)
        with self._lock.write():
            old = self._capacity
            overflow = self._resize(capacity)
        log = logger.bind(cache="basic", old_capacity=old, new_capacity=capacity)
        log.debug("cache.resized", overflow=len(overflow))
        return overflow

    def bulk_insert(self, entries: Mapping[K, Entry[V]]) -> dict[K, Entry[V]]:
        """Insert ``entries`` verbatim, keeping their ticks and use counts.

        Existing keys are replaced. If the result exceeds capacity, coldest
        entries are evicted until it fits and returned.
        """
        with self._lock.write():
            return self._bulk_insert({key: entry.copy() for key, entry in entries.items()})

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock.read():
            return key in self._entries

    # -------------------------------------------------------------------------
    # Internal helpers (caller holds the write lock)
    # -------------------------------------------------------------------------

    def _is_full(self) -> bool:
        return len(self._entries) >= self._capacity

    def _set(self, key: K, value: V) -> None:
        now = self._clock.now()
        entry = self._entries.get(key)
        if entry is not None:
            entry.value = value
            entry.touch(now)
            return
        if self._is_full():
            self._evict()
        self._entries[key] = Entry(value=value, last_tick=now)

    def _put(self, key: K, entry: Entry[V]) -> tuple[K, Entry[V]] | None:
        """Store ``entry`` as is; a new key in a full cache evicts the coldest."""
        evicted = None
        if key not in self._entries and self._is_full():
            evicted = self._evict()
        self._entries[key] = entry
        return evicted

    def _pop(self, key: K) -> Entry[V]:
        return self._entries.pop(key)

    def _evict(self) -> tuple[K, Entry[V]] | None:
        victim = select_coldest(self._entries.items())
        if victim is not None:
            del self._entries[victim[0]]
        return victim

    def _delete_many(self, keys: Iterable[K]) -> int:
        removed = 0
        for key in keys:
            if self._entries.pop(key, None) is not None:
                removed += 1
        return removed

    def _delete_where(self, predicate: Predicate) -> int:
        doomed = [key for key, entry in self._entries.items() if predicate(key, entry)]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def _resize(self, capacity: int) -> dict[K, Entry[V]]:
        overflow: dict[K, Entry[V]] = {}
        while len(self._entries) > capacity:
            key, entry = self._evict()  # type: ignore[misc]
            overflow[key] = entry
        self._capacity = capacity
        return overflow

    def _bulk_insert(self, entries: Mapping[K, Entry[V]]) -> dict[K, Entry[V]]:
        self._entries.update(entries)
        evicted: dict[K, Entry[V]] = {}
        while len(self._entries) > self._capacity:
            key, entry = self._evict()  # type: ignore[misc]
            evicted[key] = entry
        return evicted


__all__ = ["BasicCache", "select_coldest", "select_hottest"]
