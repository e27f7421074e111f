"""Exceptions raised by lrucacher."""


class CacherError(Exception):
    """Base exception for cache errors."""


class InvalidConfigError(CacherError, ValueError):
    """Raised when a cache is constructed with invalid options."""


class ClockExhaustedError(CacherError, RuntimeError):
    """Raised when too many ticks are requested within one microsecond.

    This only happens when a caller spins on the clock, so it is not
    something to recover from.
    """
