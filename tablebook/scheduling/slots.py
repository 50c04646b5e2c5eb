"""
Candidate slot generation.

``generate_slots`` produces the venue's fixed operating window at a fixed
granularity. ``slots_for_day`` intersects that window with one day's
working hours, dropping slots that start before opening, run past closing,
cross midnight, or overlap a break.
"""

import logging
from typing import Optional

from tablebook.config import settings
from tablebook.scheduling.timeutils import MINUTES_PER_DAY, from_minutes, overlaps, to_minutes
from tablebook.schemas.restaurant_schema import DayHours

logger = logging.getLogger(__name__)


def generate_slots(
    start_bound: Optional[str] = None,
    end_bound: Optional[str] = None,
    granularity: Optional[int] = None,
) -> list[str]:
    """Every ``HH:MM`` from ``start_bound`` (inclusive) to ``end_bound`` (exclusive).

    Bounds default to the configured operating window.
    """
    start = to_minutes(start_bound or settings.slots.window_start)
    end = to_minutes(end_bound or settings.slots.window_end)
    step = granularity if granularity is not None else settings.slots.granularity_minutes
    if step <= 0:
        raise ValueError(f"Slot granularity must be positive, got {step}")
    return [from_minutes(m) for m in range(start, end, step)]


def slots_for_day(
    day_hours: DayHours,
    duration: int,
    candidates: Optional[list[str]] = None,
) -> list[str]:
    """Filter candidate slots down to those bookable under ``day_hours``.

    A slot qualifies when ``[t, t + duration)`` fits between opening and
    closing time on the same calendar day and does not touch a break.
    A close time earlier than the open time means the venue closes after
    midnight; slots are then bounded by midnight.
    """
    if not day_hours.is_open or not day_hours.open_time or not day_hours.close_time:
        return []

    if candidates is None:
        candidates = generate_slots()

    open_at = to_minutes(day_hours.open_time)
    close_at = to_minutes(day_hours.close_time)
    if close_at <= open_at:
        close_at = MINUTES_PER_DAY

    break_window = None
    if day_hours.break_start and day_hours.break_end:
        break_window = (to_minutes(day_hours.break_start), to_minutes(day_hours.break_end))

    result = []
    for slot in candidates:
        start = to_minutes(slot)
        end = start + duration
        if start < open_at or end > close_at:
            continue
        if break_window and overlaps(start, end, *break_window):
            continue
        result.append(slot)

    logger.debug(
        "%d of %d candidate slots fall within %s-%s",
        len(result), len(candidates), day_hours.open_time, day_hours.close_time,
    )
    return result
