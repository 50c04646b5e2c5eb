"""
Per-slot table availability.

Combines a restaurant's table inventory with the existing bookings (and
unexpired holds) on one date to work out, for every candidate slot, how many
tables are free and which specific tables can seat a given party.

Usage:
    slots = compute_availability(tables, bookings, "2026-10-20",
                                 ["19:00", "19:30"], 120, party_size=2)
    free = [s.time for s in slots if s.is_available]
"""

import logging
from collections.abc import Iterable, Sequence
from typing import Optional, Protocol

from tablebook.scheduling.timeutils import format_date, overlaps, to_minutes
from tablebook.schemas.booking_schema import Booking, BookingStatus, TimeSlot
from tablebook.schemas.restaurant_schema import Table

logger = logging.getLogger(__name__)


class Occupancy(Protocol):
    """Anything that claims a table for a half-open minute interval."""

    table_id: str
    start_minutes: int
    end_minutes: int


def _bookings_on(bookings: Iterable[Booking], date: str) -> list[Booking]:
    return [
        b for b in bookings
        if b.date == date and b.status != BookingStatus.CANCELLED
    ]


def _overlapping(
    claims: Iterable[Occupancy], start: int, end: int
) -> list[Occupancy]:
    return [c for c in claims if overlaps(start, end, c.start_minutes, c.end_minutes)]


def find_free_tables(
    tables: Sequence[Table],
    claims: Iterable[Occupancy],
    start: int,
    end: int,
    party_size: Optional[int] = None,
) -> list[str]:
    """IDs of active tables not claimed during ``[start, end)`` that seat the party.

    One table holds one booking at a time, so any overlapping claim on a
    table removes it, regardless of party size.
    """
    taken = {c.table_id for c in _overlapping(claims, start, end)}
    return [
        t.id for t in tables
        if t.is_active
        and t.id not in taken
        and (party_size is None or t.capacity >= party_size)
    ]


def compute_availability(
    tables: Sequence[Table],
    existing_bookings: Iterable[Booking],
    date: str,
    candidate_slots: Sequence[str],
    default_duration: int,
    party_size: Optional[int] = None,
    holds: Iterable[Occupancy] = (),
) -> list[TimeSlot]:
    """Compute a ``TimeSlot`` for every candidate slot on ``date``.

    ``available_tables`` is the active table count minus the number of
    overlapping bookings, clamped to ``[0, total_tables]``. With a
    ``party_size``, a slot is only available when at least one specific
    free table has enough capacity; ``free_table_ids`` lists those tables.
    Holds remove their table from ``free_table_ids`` but do not change the
    aggregate counts.
    """
    date = format_date(date)
    active = [t for t in tables if t.is_active]
    total = len(active)
    active_ids = {t.id for t in active}

    bookings = _bookings_on(existing_bookings, date)
    holds = list(holds)

    result = []
    for slot in candidate_slots:
        start = to_minutes(slot)
        end = start + default_duration

        overlapping = _overlapping(bookings, start, end)
        booked = min(total, len(overlapping))
        available = max(0, total - booked)

        free_ids = find_free_tables(active, [*overlapping, *holds], start, end, party_size)
        is_available = available > 0 and (party_size is None or bool(free_ids))

        if len(overlapping) > total or any(b.table_id not in active_ids for b in overlapping):
            logger.debug(
                "Slot %s on %s: %d overlapping bookings against %d active tables",
                slot, date, len(overlapping), total,
            )

        result.append(TimeSlot(
            time=slot,
            available_tables=available,
            total_tables=total,
            is_available=is_available,
            free_table_ids=free_ids,
        ))
    return result


def is_table_free(
    tables: Sequence[Table],
    existing_bookings: Iterable[Booking],
    date: str,
    time_slot: str,
    duration: int,
    table_id: str,
    holds: Iterable[Occupancy] = (),
) -> bool:
    """True when ``table_id`` is active and unclaimed for the whole interval."""
    start = to_minutes(time_slot)
    claims = [*_bookings_on(existing_bookings, format_date(date)), *holds]
    return table_id in find_free_tables(tables, claims, start, start + duration)
