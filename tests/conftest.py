"""Shared pytest fixtures."""

import pytest

from lrucacher import BasicCache, Clock, PartitionedCache


class FakeTime:
    """Manually advanced microsecond time source."""

    def __init__(self, start: int = 1_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, micros: int) -> None:
        self.now += micros


@pytest.fixture
def fake_time() -> FakeTime:
    """A time source that only moves when told to."""
    return FakeTime()


@pytest.fixture
def clock(fake_time: FakeTime) -> Clock:
    """A clock driven by fake_time."""
    return Clock(time_source=fake_time)


@pytest.fixture
def basic() -> BasicCache:
    """Create a fresh BasicCache with room for two entries."""
    return BasicCache(2)


@pytest.fixture
def parted() -> PartitionedCache:
    """Create a fresh 10-entry cache split 8 active / 2 lazy."""
    return PartitionedCache(10, 0.8)
