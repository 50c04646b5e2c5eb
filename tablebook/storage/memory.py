"""
In-memory booking store.

In production this would wrap the hosted document database. It enforces
the constraints a real backend must: no two active bookings on one table
may overlap on the same date, and no two bookings of one restaurant may
share a confirmation code.
"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Optional

from tablebook.errors import ConstraintViolation, DuplicateConfirmationCode, NotFoundError
from tablebook.scheduling.timeutils import overlaps
from tablebook.schemas.booking_schema import Booking, BookingStatus
from tablebook.schemas.restaurant_schema import Restaurant, Table
from tablebook.storage.base import BookingStore

logger = logging.getLogger(__name__)


class InMemoryBookingStore(BookingStore):
    """Dict-backed store. Records are copied in and out."""

    def __init__(self) -> None:
        self._restaurants: dict[str, Restaurant] = {}
        self._tables: dict[str, Table] = {}
        self._bookings: dict[str, Booking] = {}
        self._revisions: defaultdict[str, int] = defaultdict(int)

    def _touch(self, restaurant_id: str) -> None:
        self._revisions[restaurant_id] += 1

    # ------------------------------------------------------------------ #
    # Seeding
    # ------------------------------------------------------------------ #

    def add_restaurant(self, restaurant: Restaurant) -> None:
        self._restaurants[restaurant.id] = restaurant.model_copy(deep=True)
        self._touch(restaurant.id)

    def add_table(self, table: Table) -> None:
        previous = self._tables.get(table.id)
        self._tables[table.id] = table.model_copy()
        self._touch(table.restaurant_id)
        if previous is not None and previous.restaurant_id != table.restaurant_id:
            self._touch(previous.restaurant_id)

    # ------------------------------------------------------------------ #
    # BookingStore
    # ------------------------------------------------------------------ #

    async def revision(self, restaurant_id: str) -> int:
        return self._revisions[restaurant_id]

    async def get_restaurant(self, restaurant_id: str) -> Restaurant:
        if restaurant_id not in self._restaurants:
            raise NotFoundError(f"Restaurant {restaurant_id} not found")
        return self._restaurants[restaurant_id].model_copy(deep=True)

    async def list_active_tables(self, restaurant_id: str) -> list[Table]:
        return [
            t.model_copy() for t in self._tables.values()
            if t.restaurant_id == restaurant_id and t.is_active
        ]

    async def list_bookings(
        self,
        restaurant_id: str,
        date: str,
        exclude_status: Optional[BookingStatus] = BookingStatus.CANCELLED,
    ) -> list[Booking]:
        return [
            b.model_copy() for b in self._bookings.values()
            if b.restaurant_id == restaurant_id
            and b.date == date
            and b.status != exclude_status
        ]

    async def list_restaurant_bookings(self, restaurant_id: str) -> list[Booking]:
        return [
            b.model_copy() for b in self._bookings.values()
            if b.restaurant_id == restaurant_id
        ]

    async def list_confirmation_codes(self, restaurant_id: str) -> set[str]:
        return {
            b.confirmation_code for b in self._bookings.values()
            if b.restaurant_id == restaurant_id
        }

    async def get_booking(self, booking_id: str) -> Booking:
        if booking_id not in self._bookings:
            raise NotFoundError(f"Booking {booking_id} not found")
        return self._bookings[booking_id].model_copy()

    async def insert_booking(self, booking: Booking) -> Booking:
        if booking.id in self._bookings:
            raise ConstraintViolation(f"Booking {booking.id} already exists")
        for other in self._bookings.values():
            if other.restaurant_id != booking.restaurant_id:
                continue
            if other.confirmation_code == booking.confirmation_code:
                raise DuplicateConfirmationCode(
                    f"Confirmation code {booking.confirmation_code} already used"
                )
            if (
                booking.is_active
                and other.is_active
                and other.table_id == booking.table_id
                and other.date == booking.date
                and overlaps(
                    booking.start_minutes, booking.end_minutes,
                    other.start_minutes, other.end_minutes,
                )
            ):
                raise ConstraintViolation(
                    f"Table {booking.table_id} already booked at "
                    f"{other.time_slot} on {other.date}"
                )
        self._bookings[booking.id] = booking.model_copy()
        self._touch(booking.restaurant_id)
        logger.debug("Inserted booking %s", booking.id)
        return booking.model_copy()

    async def update_booking_status(
        self,
        booking_id: str,
        new_status: BookingStatus,
        timestamps: dict[str, Optional[datetime]],
        cancel_reason: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Booking:
        current = await self.get_booking(booking_id)
        update: dict = {"status": new_status, **timestamps}
        if cancel_reason is not None:
            update["cancel_reason"] = cancel_reason
        if notes is not None:
            update["notes"] = notes
        updated = current.model_copy(update=update)
        self._bookings[booking_id] = updated
        self._touch(updated.restaurant_id)
        return updated.model_copy()

    def reset(self) -> None:
        """Clear all bookings. Used by test fixtures for isolation."""
        for restaurant_id in {b.restaurant_id for b in self._bookings.values()}:
            self._touch(restaurant_id)
        self._bookings.clear()
