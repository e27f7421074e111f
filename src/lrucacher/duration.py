"""Duration parsing utilities."""

import re
from datetime import timedelta

from lrucacher.exceptions import InvalidConfigError
from lrucacher.types import Duration

_DURATION_PATTERN = re.compile(r"^(\d+(?:\.\d+)?)(us|ms|s|m|h|d)$")
_UNITS: dict[str, float] = {
    "us": 0.001,
    "ms": 1,
    "s": 1000,
    "m": 60_000,
    "h": 3_600_000,
    "d": 86_400_000,
}


def parse_duration(duration: Duration) -> float:
    """Parse a duration to milliseconds. Numbers are already milliseconds."""
    if isinstance(duration, timedelta):
        return duration / timedelta(milliseconds=1)
    if isinstance(duration, bool):
        raise InvalidConfigError(f"Invalid duration: {duration!r}")
    if isinstance(duration, (int, float)):
        return float(duration)

    match = _DURATION_PATTERN.match(duration)
    if not match:
        raise InvalidConfigError(f"Invalid duration: {duration!r}")

    value, unit = match.groups()
    return float(value) * _UNITS[unit]


def positive_duration(duration: Duration, name: str) -> float:
    """Parse ``duration`` and require it to be greater than zero."""
    millis = parse_duration(duration)
    if millis <= 0:
        raise InvalidConfigError(f"{name} must be positive, got {duration!r}")
    return millis
