"""Ordered tick source shared by the caches."""

import threading
import time
from collections.abc import Callable

from lrucacher.exceptions import ClockExhaustedError
from lrucacher.types import Tick

MAX_TICKS_PER_MICROSECOND = 100_000


def system_micros() -> int:
    """Current wall clock in microseconds."""
    return time.time_ns() // 1000


class Clock:
    """Produces strictly increasing ticks.

    Calls that land in the same microsecond are ordered by a sequence
    number that resets when the microsecond changes. A time source that
    steps backwards is clamped to the last tick issued, so ticks never
    decrease. The exhaustion limit only counts calls that read the same
    source value; while clamped, a full sequence moves the tick to the
    next microsecond instead.

    Args:
        time_source: Callable returning integer microseconds.
    """

    def __init__(self, time_source: Callable[[], int] = system_micros) -> None:
        self._time_source = time_source
        self._last = Tick(micros=-1, seq=0)
        self._last_source: int | None = None
        self._repeats = 0
        self._lock = threading.Lock()

    def now(self) -> Tick:
        """Return a tick greater than every tick returned before."""
        with self._lock:
            micros = self._time_source()
            if micros == self._last_source:
                self._repeats += 1
                if self._repeats >= MAX_TICKS_PER_MICROSECOND:
                    raise ClockExhaustedError(
                        f"more than {MAX_TICKS_PER_MICROSECOND} ticks in one microsecond"
                    )
            else:
                self._last_source = micros
                self._repeats = 0

            last_micros, seq = self._last
            if micros > last_micros:
                tick = Tick(micros=micros, seq=0)
            elif seq + 1 < MAX_TICKS_PER_MICROSECOND:
                tick = Tick(micros=last_micros, seq=seq + 1)
            else:
                tick = Tick(micros=last_micros + 1, seq=0)
            self._last = tick
            return tick

    def micros(self) -> int:
        """Read the time source without issuing a tick."""
        return self._time_source()
