"""Readers-writer lock."""

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class RWLock:
    """Many concurrent readers or one writer.

    Waiting writers block new readers so a steady stream of reads cannot
    starve a writer. The lock is not reentrant: a thread that holds the
    write side and asks for either side again gets a ``RuntimeError``
    rather than a deadlock.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer: int | None = None
        self._writers_waiting = 0

    def acquire_read(self) -> None:
        with self._cond:
            self._check_owner()
            while self._writer is not None or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if not self._readers:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._check_owner()
            self._writers_waiting += 1
            try:
                while self._writer is not None or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = threading.get_ident()

    def release_write(self) -> None:
        with self._cond:
            self._writer = None
            self._cond.notify_all()

    @contextmanager
    def read(self) -> Iterator[None]:
        """Hold the shared side for the duration of the block."""
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write(self) -> Iterator[None]:
        """Hold the exclusive side for the duration of the block."""
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()

    def _check_owner(self) -> None:
        if self._writer == threading.get_ident():
            raise RuntimeError("lock is not reentrant")
