"""Protocol shared by the cache variants."""

from collections.abc import Iterable, Mapping
from typing import Protocol, TypeVar, runtime_checkable

from lrucacher.clock import Clock
from lrucacher.types import Entry, Predicate, Ranked

K = TypeVar("K")
V = TypeVar("V")


@runtime_checkable
class Cache(Protocol[K, V]):
    """Operations every cache variant provides (and a reaper can wrap)."""

    @property
    def clock(self) -> Clock:
        """Clock used to stamp entries."""
        ...

    @property
    def capacity(self) -> int:
        """Maximum number of entries."""
        ...

    def set(self, key: K, value: V) -> None:
        """Insert or update a value."""
        ...

    def get(self, key: K) -> tuple[V | None, bool]:
        """Look up a value, counting it as a use."""
        ...

    def peek(self, key: K) -> tuple[V | None, bool]:
        """Look up a value without counting it as a use."""
        ...

    def delete(self, key: K) -> None:
        """Remove a key if present."""
        ...

    def delete_many(self, keys: Iterable[K]) -> int:
        """Remove several keys at once."""
        ...

    def delete_where(self, predicate: Predicate) -> int:
        """Remove every entry matching ``predicate``."""
        ...

    def clear(self) -> None:
        """Remove every entry."""
        ...

    def is_full(self) -> bool:
        """Whether inserting a new key would evict."""
        ...

    def keys(self) -> list[K]:
        """Point-in-time list of keys."""
        ...

    def values(self) -> list[V]:
        """Point-in-time list of values."""
        ...

    def snapshot(self) -> dict[K, Entry[V]]:
        """Point-in-time copy of every entry."""
        ...

    def to_dict(self) -> dict[K, V]:
        """Point-in-time key to value mapping."""
        ...

    def coldest(self) -> Ranked[K] | None:
        """The entry eviction would pick next."""
        ...

    def hottest(self) -> Ranked[K] | None:
        """The most recently and most frequently used entry."""
        ...

    def bulk_insert(self, entries: Mapping[K, Entry[V]]) -> dict[K, Entry[V]]:
        """Insert entries verbatim, returning whatever had to be evicted."""
        ...

    def __len__(self) -> int: ...

    def __contains__(self, key: object) -> bool: ...
