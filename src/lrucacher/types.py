"""Core types for lrucacher."""

from collections.abc import Callable, Hashable
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Generic, NamedTuple, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")
T = TypeVar("T")

# Saturation point for Entry.uses
MAX_USES = 2**63 - 1


class Tick(NamedTuple):
    """A totally ordered access timestamp.

    ``micros`` is the wall clock in microseconds, ``seq`` orders calls made
    within the same microsecond.
    """

    micros: int
    seq: int


@dataclass(slots=True)
class Entry(Generic[V]):
    """A cached value with its recency and frequency metadata."""

    value: V
    last_tick: Tick
    uses: int = 1

    def touch(self, tick: Tick) -> None:
        """Record one use at ``tick``."""
        if tick > self.last_tick:
            self.last_tick = tick
        if self.uses < MAX_USES:
            self.uses += 1

    def copy(self) -> "Entry[V]":
        """Return a detached copy sharing the same value."""
        return Entry(value=self.value, last_tick=self.last_tick, uses=self.uses)


@dataclass(frozen=True, slots=True)
class Ranked(Generic[K]):
    """The key and metadata of a coldest/hottest selection."""

    key: K
    tick: Tick
    uses: int


@dataclass(frozen=True, slots=True)
class SegmentView(Generic[T]):
    """Per-segment view of a partitioned cache."""

    active: T
    lazy: T


# Reaper predicate: (key, entry) -> should the entry be removed
Predicate = Callable[[Any, Entry[Any]], bool]

# Duration type alias
Duration = str | int | float | timedelta  # "30s", "250ms", timedelta or milliseconds
