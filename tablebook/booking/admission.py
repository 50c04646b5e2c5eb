"""
Booking admission: validate a booking request and build the booking record.

Checks run in a fixed order and each failure has its own error type,
after the customer email is checked (FormatError):
1. Advance window  -> AdvanceWindowViolation
2. Party size      -> CapacityViolation
3. Table still free (fresh recomputation) -> SlotNoLongerAvailable
4. Online booking enabled -> BookingDisabled

Nothing here writes to storage; the caller persists the returned booking
while holding the per-restaurant-per-date lock.
"""

import logging
import uuid
from collections.abc import Container, Iterable, Sequence
from datetime import datetime, timedelta
from typing import Optional

from tablebook.booking.codes import generate_confirmation_code
from tablebook.config import settings
from tablebook.errors import (
    AdvanceWindowViolation,
    BookingDisabled,
    CapacityViolation,
    FormatError,
    SlotNoLongerAvailable,
)
from tablebook.scheduling.availability import Occupancy, is_table_free
from tablebook.scheduling.slots import slots_for_day
from tablebook.scheduling.timeutils import parse_date, slot_datetime
from tablebook.schemas.booking_schema import (
    Booking,
    BookingRequest,
    BookingStatus,
    CustomerContact,
)
from tablebook.schemas.restaurant_schema import Restaurant, Table
from tablebook.utils import normalize_email, normalize_phone

logger = logging.getLogger(__name__)


def booking_duration(restaurant: Restaurant) -> int:
    """Restaurant override, else the configured default."""
    return (
        restaurant.booking_settings.booking_duration_minutes
        or settings.booking.default_duration_minutes
    )


def check_advance_window(date: str, time_slot: str, restaurant: Restaurant, now: datetime) -> None:
    policy = restaurant.booking_settings
    starts_at = slot_datetime(date, time_slot)
    earliest = now + timedelta(hours=policy.min_advance_booking_hours)
    latest = now + timedelta(days=policy.max_advance_booking_days)
    if starts_at < earliest:
        raise AdvanceWindowViolation(
            f"Bookings must be made at least {policy.min_advance_booking_hours} hours in advance"
        )
    if starts_at > latest:
        raise AdvanceWindowViolation(
            f"Bookings can be made at most {policy.max_advance_booking_days} days in advance"
        )


def check_party_size(party_size: int, restaurant: Restaurant, table: Optional[Table]) -> None:
    limit = restaurant.booking_settings.max_party_size
    if table is not None:
        limit = min(limit, table.capacity)
    if not 1 <= party_size <= limit:
        raise CapacityViolation(
            f"Party size must be between 1 and {limit}, got {party_size}"
        )


def ensure_bookable_slot(date: str, time_slot: str, restaurant: Restaurant, duration: int) -> None:
    """The slot must be on the grid and inside that day's working hours."""
    day_hours = restaurant.working_hours.for_date(parse_date(date))
    if time_slot not in slots_for_day(day_hours, duration):
        raise SlotNoLongerAvailable(f"{time_slot} on {date} is not a bookable slot")


def normalized_email(customer: CustomerContact) -> Optional[str]:
    """The customer's email, normalized. Raises ``FormatError`` if it is implausible."""
    if not customer.email or not customer.email.strip():
        return None
    email = normalize_email(customer.email)
    if email is None:
        raise FormatError(f"Invalid email address {customer.email!r}")
    return email


def check_slot_free(
    date: str,
    time_slot: str,
    table_id: str,
    restaurant: Restaurant,
    tables: Sequence[Table],
    existing_bookings: Iterable[Booking],
    duration: int,
    holds: Iterable[Occupancy] = (),
) -> None:
    ensure_bookable_slot(date, time_slot, restaurant, duration)
    if not is_table_free(tables, existing_bookings, date, time_slot, duration, table_id, holds):
        raise SlotNoLongerAvailable(
            f"Table {table_id} is no longer available at {time_slot} on {date}"
        )


def admit_booking(
    request: BookingRequest,
    restaurant: Restaurant,
    tables: Sequence[Table],
    existing_bookings: Iterable[Booking],
    existing_codes: Container[str],
    now: datetime,
    holds: Iterable[Occupancy] = (),
) -> Booking:
    """Validate ``request`` against fresh data and return the new booking.

    ``existing_bookings`` and ``holds`` must be read after every previously
    committed booking for this restaurant and date is visible.

    Raises:
        AdvanceWindowViolation, CapacityViolation, SlotNoLongerAvailable,
        BookingDisabled: In that order of precedence.
        FormatError: If the customer email is implausible, before any other check.
        ConfirmationCodeExhausted: If no unique code could be generated.
    """
    customer_email = normalized_email(request.customer)
    table = next((t for t in tables if t.id == request.table_id and t.is_active), None)
    duration = booking_duration(restaurant)

    check_advance_window(request.date, request.time_slot, restaurant, now)
    check_party_size(request.party_size, restaurant, table)
    check_slot_free(
        request.date, request.time_slot, request.table_id,
        restaurant, tables, existing_bookings, duration, holds,
    )
    if not restaurant.booking_settings.is_online_booking_enabled:
        raise BookingDisabled(f"{restaurant.name} does not accept online bookings")

    auto_confirm = restaurant.booking_settings.auto_confirm_bookings
    booking = Booking(
        id=uuid.uuid4().hex,
        restaurant_id=restaurant.id,
        table_id=request.table_id,
        date=request.date,
        time_slot=request.time_slot,
        duration=duration,
        party_size=request.party_size,
        status=BookingStatus.CONFIRMED if auto_confirm else BookingStatus.PENDING,
        confirmation_code=generate_confirmation_code(existing_codes),
        customer_name=request.customer.name.strip(),
        customer_phone=normalize_phone(request.customer.phone),
        customer_email=customer_email,
        customer_id=request.customer.customer_id,
        special_requests=request.special_requests,
        created_at=now,
        confirmed_at=now if auto_confirm else None,
    )
    logger.info(
        "Admitted booking %s for table %s at %s %s (%s)",
        booking.confirmation_code, booking.table_id, booking.date,
        booking.time_slot, booking.status.value,
    )
    return booking
