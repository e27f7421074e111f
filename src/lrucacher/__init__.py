"""lrucacher - Bounded in-process caches with LRU/LFU hybrid eviction."""

from lrucacher.base import Cache
from lrucacher.basic import BasicCache
from lrucacher.clock import Clock
from lrucacher.duration import parse_duration
from lrucacher.exceptions import (
    CacherError,
    ClockExhaustedError,
    InvalidConfigError,
)
from lrucacher.factory import (
    new_async_elapsed,
    new_async_timed,
    new_basic,
    new_elapsed,
    new_partitioned,
    new_timed,
)
from lrucacher.locks import RWLock
from lrucacher.partitioned import PartitionedCache
from lrucacher.timed import AsyncTimedCache, TimedCache, stale_by_age
from lrucacher.types import (
    Duration,
    Entry,
    Predicate,
    Ranked,
    SegmentView,
    Tick,
)

__version__ = "0.1.0"

__all__ = [
    "AsyncTimedCache",
    "BasicCache",
    "Cache",
    "CacherError",
    "Clock",
    "ClockExhaustedError",
    "Duration",
    "Entry",
    "InvalidConfigError",
    "PartitionedCache",
    "Predicate",
    "RWLock",
    "Ranked",
    "SegmentView",
    "Tick",
    "TimedCache",
    "new_async_elapsed",
    "new_async_timed",
    "new_basic",
    "new_elapsed",
    "new_partitioned",
    "new_timed",
    "parse_duration",
    "stale_by_age",
]
