"""Tests for reaper-augmented caches."""

import asyncio
import gc
import threading
import time
from collections.abc import Callable

import pytest
from conftest import FakeTime

from lrucacher import (
    AsyncTimedCache,
    BasicCache,
    Clock,
    InvalidConfigError,
    PartitionedCache,
    TimedCache,
    new_async_elapsed,
    new_elapsed,
    new_timed,
    stale_by_age,
)


def wait_for(condition: Callable[[], bool], timeout: float = 3.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(0.01)
    return condition()


class TestStaleByAge:
    """Tests for the built-in age predicate."""

    def test_matches_only_old_entries(self, clock: Clock, fake_time: FakeTime) -> None:
        """Test only entries unused for longer than max_age match."""
        cache = BasicCache(10, clock=clock)
        cache.set("old", 1)
        fake_time.advance(1_500_000)
        cache.set("new", 2)
        fake_time.advance(600_000)

        assert cache.delete_where(stale_by_age("2s", clock)) == 1
        assert cache.keys() == ["new"]

    def test_reading_refreshes_age(self, clock: Clock, fake_time: FakeTime) -> None:
        """Test a read resets an entry's age."""
        cache = BasicCache(10, clock=clock)
        cache.set("a", 1)
        fake_time.advance(900_000)
        cache.get("a")
        fake_time.advance(900_000)
        assert cache.delete_where(stale_by_age("1s", clock)) == 0

    def test_rejects_non_positive_age(self, clock: Clock) -> None:
        """Test a zero max_age is rejected."""
        with pytest.raises(InvalidConfigError, match="max_age"):
            stale_by_age(0, clock)


class TestTimedCache:
    """Tests for the reaper thread."""

    def test_elapsed_entry_is_reaped(self, clock: Clock, fake_time: FakeTime) -> None:
        """Test an entry older than max_age disappears on the next pass."""
        with new_elapsed(BasicCache(10, clock=clock), period="20ms", max_age="1s") as cache:
            cache.set(1, 1)
            assert cache.get(1) == (1, True)
            fake_time.advance(2_000_000)
            assert wait_for(lambda: 1 not in cache)
            assert cache.get(1) == (None, False)

    def test_elapsed_with_real_clock(self) -> None:
        """Test age-based reaping with the system clock."""
        with new_elapsed(BasicCache(10), period="20ms", max_age="50ms") as cache:
            cache.set(1, 1)
            assert wait_for(lambda: len(cache) == 0)

    def test_custom_predicate(self) -> None:
        """Test the reaper removes whatever the predicate matches."""
        with new_timed(BasicCache(10), "10ms", lambda key, entry: key % 2 == 0) as cache:
            for i in range(6):
                cache.set(i, i)
            assert wait_for(lambda: sorted(cache.keys()) == [1, 3, 5])

    def test_run_once(self, clock: Clock, fake_time: FakeTime) -> None:
        """Test run_once applies the predicate immediately."""
        inner = BasicCache(10, clock=clock)
        cache = TimedCache(inner, "1h", stale_by_age("1s", clock), start=False)
        cache.set("a", 1)
        fake_time.advance(5_000_000)
        assert cache.run_once() == 1
        assert len(inner) == 0
        cache.close()

    def test_predicate_errors_do_not_stop_reaper(self) -> None:
        """Test a failing pass is logged and the reaper keeps going."""
        failing = threading.Event()
        failing.set()

        def predicate(key: object, entry: object) -> bool:
            if failing.is_set():
                raise ValueError("boom")
            return True

        with new_timed(BasicCache(10), "10ms", predicate) as cache:
            cache.set("a", 1)
            time.sleep(0.05)
            assert "a" in cache
            failing.clear()
            assert wait_for(lambda: "a" not in cache)

    def test_close_joins_thread(self) -> None:
        """Test close stops the thread and forbids restarting."""
        cache = new_timed(BasicCache(10), "10ms", lambda key, entry: False)
        thread = cache._thread
        assert thread.is_alive()

        cache.close()

        assert cache.closed
        assert not thread.is_alive()
        with pytest.raises(RuntimeError, match="closed"):
            cache.start()

    def test_dropping_wrapper_stops_reaper(self) -> None:
        """Test the reaper thread exits once the wrapper is garbage collected."""
        cache = new_timed(BasicCache(10), "10ms", lambda key, entry: False)
        thread = cache._thread
        del cache
        gc.collect()
        thread.join(timeout=2)
        assert not thread.is_alive()

    def test_wraps_partitioned_cache(self, clock: Clock, fake_time: FakeTime) -> None:
        """Test a partitioned cache can be reaped across both segments."""
        inner = PartitionedCache(10, 0.5, clock=clock)
        with new_elapsed(inner, period="1h", max_age="1s") as cache:
            for i in range(10):
                cache.set(i, i)
            cache.get(9)
            assert cache.capacity == 10
            assert cache.inner.adjust_rate(0.8) is True

            fake_time.advance(2_000_000)
            cache.set("fresh", 1)
            assert cache.run_once() == 9
            assert cache.keys() == ["fresh"]

    def test_delegation(self) -> None:
        """Test the wrapper forwards every cache operation."""
        with new_timed(BasicCache(3), "1h", lambda key, entry: False) as cache:
            cache.set("a", 1)
            cache.set("b", 2)
            assert cache.peek("a") == (1, True)
            assert cache.values() == [1, 2]
            assert cache.to_dict() == {"a": 1, "b": 2}
            assert set(cache.snapshot()) == {"a", "b"}
            assert cache.coldest() is not None
            assert cache.hottest() is not None
            assert not cache.is_full()
            assert cache.delete_many(["a"]) == 1
            cache.delete("b")
            assert len(cache) == 0
            source = BasicCache(1)
            source.set("c", 3)
            assert cache.bulk_insert(source.snapshot()) == {}
            assert cache.get("c") == (3, True)
            cache.clear()
            assert "c" not in cache

    @pytest.mark.parametrize("period", [0, -5, "0s", "soon"])
    def test_invalid_period(self, period: object) -> None:
        """Test non-positive or malformed periods are rejected."""
        with pytest.raises(InvalidConfigError):
            new_timed(BasicCache(1), period, lambda key, entry: False)  # type: ignore[arg-type]


class TestAsyncTimedCache:
    """Tests for the asyncio reaper."""

    async def test_elapsed_entry_is_reaped(self, clock: Clock, fake_time: FakeTime) -> None:
        """Test an entry older than max_age disappears on the next pass."""
        async with new_async_elapsed(
            BasicCache(10, clock=clock), period="10ms", max_age="1s"
        ) as cache:
            assert cache.running
            cache.set(1, 1)
            fake_time.advance(2_000_000)
            for _ in range(300):
                if 1 not in cache:
                    break
                await asyncio.sleep(0.01)
            assert cache.get(1) == (None, False)
        assert not cache.running

    async def test_aclose_without_start(self) -> None:
        """Test aclose on a never-started wrapper is a no-op."""
        cache = AsyncTimedCache(BasicCache(1), "1s", lambda key, entry: False)
        await cache.aclose()
        assert not cache.running

    async def test_dropping_wrapper_cancels_reaper(self) -> None:
        """Test the reaper task stops once the wrapper is garbage collected."""
        cache = AsyncTimedCache(BasicCache(1), "5ms", lambda key, entry: False)
        cache.start()
        task = cache._task
        assert task is not None
        del cache
        gc.collect()
        await asyncio.sleep(0.05)
        assert task.done()
        assert task.cancelled()

    async def test_aclose_detaches_finalizer(self) -> None:
        """Test aclose stops the task and the wrapper can still be dropped."""
        cache = AsyncTimedCache(BasicCache(1), "5ms", lambda key, entry: False)
        cache.start()
        task = cache._task
        await cache.aclose()
        assert task is not None and task.done()
        assert cache._finalizer is None
        del cache
        gc.collect()

    async def test_failed_pass_keeps_task_alive(self) -> None:
        """Test a failing pass does not end the reaper task."""
        def predicate(key: object, entry: object) -> bool:
            raise ValueError("boom")

        async with AsyncTimedCache(BasicCache(1), "5ms", predicate) as cache:
            cache.set("a", 1)
            await asyncio.sleep(0.05)
            assert cache.running
