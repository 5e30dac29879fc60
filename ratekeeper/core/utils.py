"""Time helpers shared by the limiters."""

import re
import time
from datetime import timedelta
from typing import Callable, Optional, Union

# A clock returns the current time as float seconds since the epoch.
Clock = Callable[[], float]

# Duration accepted wherever a wait ceiling is passed in.
Duration = Union[int, float, timedelta]

_DURATION_PATTERN = re.compile(r"^(\d+)\s*([a-z]+)$")

_UNIT_SECONDS = {
    "s": 1,
    "sec": 1,
    "second": 1,
    "seconds": 1,
    "m": 60,
    "min": 60,
    "minute": 60,
    "minutes": 60,
    "h": 3600,
    "hr": 3600,
    "hour": 3600,
    "hours": 3600,
    "d": 86400,
    "day": 86400,
    "days": 86400,
    "w": 604800,
    "week": 604800,
    "weeks": 604800,
    "month": 2592000,  # 30 days
    "months": 2592000,
    "y": 31536000,  # 365 days
    "year": 31536000,
    "years": 31536000,
}


def now() -> float:
    """Return the current wall-clock time in seconds (sub-second precision)."""
    return time.time()


def duration_to_seconds(duration: str) -> int:
    """Convert a human readable duration into seconds.

    Args:
        duration: String such as ``"1 second"``, ``"10m"`` or ``"2 hours"``.
            Months count as 30 days and years as 365 days.

    Returns:
        Number of seconds the duration spans.

    Raises:
        ValueError: If the string cannot be parsed or uses an unknown unit.

    Examples:
        >>> duration_to_seconds("1 hour")
        3600
        >>> duration_to_seconds("15s")
        15
    """
    trimmed = duration.strip().lower()
    match = _DURATION_PATTERN.match(trimmed)
    if not match:
        raise ValueError(f"Invalid duration format: {duration}")

    amount = int(match.group(1))
    unit = match.group(2)

    multiplier = _UNIT_SECONDS.get(unit)
    if multiplier is None:
        raise ValueError(f"Unknown time unit: {unit}")

    return amount * multiplier


def to_seconds(value: Optional[Duration]) -> Optional[float]:
    """Normalize a wait ceiling to float seconds, passing ``None`` through."""
    if value is None:
        return None
    if isinstance(value, timedelta):
        return value.total_seconds()
    return float(value)
