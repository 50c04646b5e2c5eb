"""
Clock-time arithmetic on ``HH:MM`` strings and minute offsets.

All intervals are half-open: ``[start, end)``. A booking ending exactly when
another starts does not overlap it.
"""

import re
from datetime import date, datetime, time, timedelta
from typing import Union

from tablebook.errors import FormatError

MINUTES_PER_DAY = 24 * 60

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})$")

TimeLike = Union[str, int]


def to_minutes(value: str) -> int:
    """Convert ``"HH:MM"`` to minutes after midnight.

    Raises:
        FormatError: If the string is not a valid 24-hour clock time.
    """
    if not isinstance(value, str):
        raise FormatError(f"Expected HH:MM string, got {value!r}")
    match = _TIME_RE.match(value.strip())
    if not match:
        raise FormatError(f"Malformed time {value!r}, expected HH:MM")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise FormatError(f"Time out of range: {value!r}")
    return hours * 60 + minutes


def from_minutes(total: int) -> str:
    """Convert minutes after midnight to ``"HH:MM"``, wrapping modulo 24h."""
    total %= MINUTES_PER_DAY
    return f"{total // 60:02d}:{total % 60:02d}"


def add_minutes(value: str, delta: int) -> str:
    """Shift a clock time by ``delta`` minutes, wrapping around midnight."""
    return from_minutes(to_minutes(value) + delta)


def end_time(start: str, duration: int) -> str:
    """Clock time at which an interval of ``duration`` minutes ends."""
    return add_minutes(start, duration)


def _as_minutes(value: TimeLike) -> int:
    return value if isinstance(value, int) else to_minutes(value)


def overlaps(start_a: TimeLike, end_a: TimeLike, start_b: TimeLike, end_b: TimeLike) -> bool:
    """True iff ``[start_a, end_a)`` and ``[start_b, end_b)`` intersect."""
    return _as_minutes(start_a) < _as_minutes(end_b) and _as_minutes(start_b) < _as_minutes(end_a)


def parse_date(value: Union[str, date]) -> date:
    """Parse a venue-local ``YYYY-MM-DD`` date.

    Raises:
        FormatError: If the string is not a valid calendar date.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except (AttributeError, ValueError):
        raise FormatError(f"Malformed date {value!r}, expected YYYY-MM-DD") from None


def format_date(value: Union[str, date]) -> str:
    """Normalize a date or date string to ``YYYY-MM-DD``."""
    return parse_date(value).isoformat()


def slot_datetime(day: Union[str, date], slot: str) -> datetime:
    """Naive venue-local datetime at which a slot starts."""
    minutes = to_minutes(slot)
    return datetime.combine(parse_date(day), time()) + timedelta(minutes=minutes)
