"""
Booking service: the public entry point for availability, admission and
status changes.

All mutations of one restaurant's bookings on one date run under a single
``asyncio.Lock``, so "recompute availability + write booking" is atomic
with respect to other admissions and cancellations on that date. Reads run
concurrently. Availability views are cached per (restaurant, date, party
size) and stamped with the store's revision for the restaurant, so a write
made anywhere, including table or restaurant edits, forces a recompute.
Accepted mutations made through this service also drop the view directly.

Usage:
    service = BookingService(store)
    slots = await service.get_availability("r-1", "2026-10-20", party_size=2)
    booking = await service.book_slot(request)
    await service.change_status(booking.id, "confirm")
"""

import asyncio
from collections.abc import Callable
from datetime import datetime
from typing import Optional, TypedDict, Union
from weakref import WeakValueDictionary

from pydantic import ValidationError

from tablebook.booking.admission import (
    admit_booking,
    booking_duration,
    check_advance_window,
    check_party_size,
    ensure_bookable_slot,
)
from tablebook.booking.codes import generate_confirmation_code
from tablebook.booking.holds import HoldRegistry
from tablebook.booking.lifecycle import BookingEvent, BookingLifecycle
from tablebook.config import settings
from tablebook.errors import (
    CapacityViolation,
    ConfirmationCodeExhausted,
    ConstraintViolation,
    DuplicateConfirmationCode,
    FormatError,
    InvalidTransition,
    NotFoundError,
    SlotNoLongerAvailable,
)
from tablebook.logging_context import get_request_id, get_request_logger, set_request_id
from tablebook.scheduling.availability import compute_availability, find_free_tables
from tablebook.scheduling.slots import slots_for_day
from tablebook.scheduling.timeutils import format_date, from_minutes, parse_date, to_minutes
from tablebook.schemas.booking_schema import (
    Booking,
    BookingRequest,
    BookingStats,
    BookingStatus,
    TimeSlot,
)
from tablebook.storage.base import BookingStore

logger = get_request_logger(__name__)

_CacheKey = tuple[str, str, Optional[int]]


class HoldResult(TypedDict):
    """Result from reserve_slot."""

    reservation_token: str
    table_id: str
    expires_in: int


def _ensure_request_id() -> None:
    if get_request_id() == "NO_REQUEST_ID":
        set_request_id()


def _parse_request(request: Union[BookingRequest, dict]) -> BookingRequest:
    if isinstance(request, BookingRequest):
        return request
    try:
        return BookingRequest.model_validate(request)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        raise FormatError(f"Malformed booking request: {problems}") from exc


def _parse_event(event: Union[BookingEvent, str]) -> BookingEvent:
    try:
        return BookingEvent(event)
    except ValueError:
        valid = [e.value for e in BookingEvent]
        raise InvalidTransition(
            f"Unknown event {event!r}. Valid events: {valid}"
        ) from None


class BookingService:
    """Availability queries, booking admission and booking status changes."""

    def __init__(
        self,
        store: BookingStore,
        clock: Callable[[], datetime] = datetime.now,
        holds: Optional[HoldRegistry] = None,
        lifecycle: Optional[BookingLifecycle] = None,
    ) -> None:
        self._store = store
        self._clock = clock
        self._holds = holds or HoldRegistry()
        self._lifecycle = lifecycle or BookingLifecycle()
        # Locks live only while some coroutine holds or awaits them
        self._locks: WeakValueDictionary[tuple[str, str], asyncio.Lock] = WeakValueDictionary()
        self._cache: dict[_CacheKey, tuple[int, list[TimeSlot]]] = {}

    # ------------------------------------------------------------------ #
    # Cache and locking
    # ------------------------------------------------------------------ #

    def _lock_for(self, restaurant_id: str, date: str) -> asyncio.Lock:
        key = (restaurant_id, date)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def invalidate(self, restaurant_id: str, date: Optional[str] = None) -> None:
        """Drop cached availability for a restaurant, optionally one date only."""
        stale = [
            key for key in self._cache
            if key[0] == restaurant_id and (date is None or key[1] == date)
        ]
        for key in stale:
            del self._cache[key]
        if stale:
            logger.debug("Invalidated %d availability view(s) for %s %s",
                         len(stale), restaurant_id, date or "*")

    def _evict_past(self, today: str) -> None:
        for key in [k for k in self._cache if k[1] < today]:
            del self._cache[key]

    # ------------------------------------------------------------------ #
    # Availability
    # ------------------------------------------------------------------ #

    async def get_availability(
        self,
        restaurant_id: str,
        date: str,
        party_size: Optional[int] = None,
    ) -> list[TimeSlot]:
        """Per-slot availability for one date, optionally for a party size."""
        _ensure_request_id()
        date = format_date(date)
        if party_size is not None and party_size < 1:
            raise CapacityViolation(f"Party size must be at least 1, got {party_size}")

        now = self._clock()
        self._evict_past(format_date(now))
        holds = self._holds.active(restaurant_id, date, now)
        key = (restaurant_id, date, party_size)

        # Read before the data, so a write in between leaves a stale stamp
        revision = await self._store.revision(restaurant_id)
        cached = self._cache.get(key)
        if not holds and cached is not None and cached[0] == revision:
            return [slot.model_copy() for slot in cached[1]]

        restaurant, tables, bookings = await asyncio.gather(
            self._store.get_restaurant(restaurant_id),
            self._store.list_active_tables(restaurant_id),
            self._store.list_bookings(restaurant_id, date),
        )
        duration = booking_duration(restaurant)
        candidates = slots_for_day(restaurant.working_hours.for_date(parse_date(date)), duration)
        slots = compute_availability(
            tables, bookings, date, candidates, duration, party_size, holds,
        )
        if not holds:
            self._cache[key] = (revision, slots)
        logger.info(
            "Availability for %s on %s (party %s): %d/%d slots open",
            restaurant_id, date, party_size,
            sum(1 for s in slots if s.is_available), len(slots),
        )
        return [slot.model_copy() for slot in slots]

    # ------------------------------------------------------------------ #
    # Admission
    # ------------------------------------------------------------------ #

    async def book_slot(self, request: Union[BookingRequest, dict]) -> Booking:
        """Create a booking for one table at one slot.

        Raises:
            FormatError: Malformed request fields or customer email.
            AdvanceWindowViolation, CapacityViolation, SlotNoLongerAvailable,
            BookingDisabled: Admission failures, nothing is written.
            StorageError: Collaborator failures.
        """
        _ensure_request_id()
        request = _parse_request(request)
        rid, date = request.restaurant_id, request.date

        async with self._lock_for(rid, date):
            now = self._clock()
            restaurant, tables, bookings, codes = await asyncio.gather(
                self._store.get_restaurant(rid),
                self._store.list_active_tables(rid),
                self._store.list_bookings(rid, date),
                self._store.list_confirmation_codes(rid),
            )
            own_token = self._own_hold_token(request, now)
            holds = self._holds.active(rid, date, now, exclude_token=own_token)

            try:
                booking = admit_booking(request, restaurant, tables, bookings, codes, now, holds)
            except SlotNoLongerAvailable:
                logger.info("Slot %s %s table %s lost for %s",
                            date, request.time_slot, request.table_id, rid)
                raise

            try:
                saved = await self._insert_with_unique_code(booking, codes)
            except ConstraintViolation as exc:
                logger.warning("Storage rejected booking for table %s: %s", request.table_id, exc)
                raise SlotNoLongerAvailable(
                    f"Table {request.table_id} is no longer available at "
                    f"{request.time_slot} on {date}"
                ) from exc

            if own_token:
                self._holds.release(own_token)
            self.invalidate(rid, date)

        logger.info("Booking %s created (%s)", saved.confirmation_code, saved.status.value)
        return saved

    async def _insert_with_unique_code(self, booking: Booking, codes: set[str]) -> Booking:
        """Insert ``booking``, drawing a new code each time the store reports a collision.

        Codes are read under the per-date lock, so an admission for another
        date of the same restaurant can claim a code in between.
        """
        taken = set(codes)
        attempts = settings.booking.confirmation_code_max_attempts
        for _ in range(attempts):
            try:
                return await self._store.insert_booking(booking)
            except DuplicateConfirmationCode:
                taken.add(booking.confirmation_code)
                logger.warning("Confirmation code %s taken concurrently, regenerating",
                               booking.confirmation_code)
                booking = booking.model_copy(
                    update={"confirmation_code": generate_confirmation_code(taken)}
                )
        raise ConfirmationCodeExhausted(
            f"Could not store a unique confirmation code after {attempts} attempts"
        )

    def _own_hold_token(self, request: BookingRequest, now: datetime) -> Optional[str]:
        """The request's token, if it names an unexpired hold on this very slot."""
        if not request.reservation_token:
            return None
        hold = self._holds.get(request.reservation_token, now)
        if hold is None:
            return None
        matches = (
            hold.restaurant_id == request.restaurant_id
            and hold.table_id == request.table_id
            and hold.date == request.date
            and hold.time_slot == request.time_slot
        )
        return hold.reservation_token if matches else None

    # ------------------------------------------------------------------ #
    # Holds
    # ------------------------------------------------------------------ #

    async def reserve_slot(
        self,
        restaurant_id: str,
        date: str,
        time_slot: str,
        party_size: int,
        table_id: Optional[str] = None,
    ) -> HoldResult:
        """Hold a table for a slot while the customer completes the booking.

        Picks ``table_id`` if given and free, otherwise the smallest free
        table that seats the party.
        """
        _ensure_request_id()
        date = format_date(date)
        time_slot = from_minutes(to_minutes(time_slot))

        async with self._lock_for(restaurant_id, date):
            now = self._clock()
            restaurant, tables, bookings = await asyncio.gather(
                self._store.get_restaurant(restaurant_id),
                self._store.list_active_tables(restaurant_id),
                self._store.list_bookings(restaurant_id, date),
            )
            duration = booking_duration(restaurant)
            check_advance_window(date, time_slot, restaurant, now)
            table = next((t for t in tables if t.id == table_id), None)
            check_party_size(party_size, restaurant, table)
            ensure_bookable_slot(date, time_slot, restaurant, duration)

            start = to_minutes(time_slot)
            claims = [*bookings, *self._holds.active(restaurant_id, date, now)]
            free = set(find_free_tables(tables, claims, start, start + duration, party_size))
            candidates = sorted(
                (t for t in tables if t.id in free and (table_id is None or t.id == table_id)),
                key=lambda t: t.capacity,
            )
            if not candidates:
                raise SlotNoLongerAvailable(
                    f"No table for {party_size} available at {time_slot} on {date}"
                )

            hold = self._holds.create(
                restaurant_id, candidates[0].id, date, time_slot, duration, now,
            )
            self.invalidate(restaurant_id, date)

        return {
            "reservation_token": hold.reservation_token,
            "table_id": hold.table_id,
            "expires_in": self._holds.timeout_seconds,
        }

    async def release_hold(self, reservation_token: str) -> bool:
        hold = self._holds.get(reservation_token, self._clock())
        released = self._holds.release(reservation_token)
        if hold is not None:
            self.invalidate(hold.restaurant_id, hold.date)
        return released

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def change_status(
        self,
        booking_id: str,
        event: Union[BookingEvent, str],
        reason: Optional[str] = None,
    ) -> Booking:
        """Apply a lifecycle event to a booking.

        Raises:
            InvalidTransition: If the event is unknown or not valid for the booking now.
            NotFoundError: If the booking does not exist.
        """
        _ensure_request_id()
        event = _parse_event(event)
        current = await self._store.get_booking(booking_id)

        async with self._lock_for(current.restaurant_id, current.date):
            current = await self._store.get_booking(booking_id)
            updated = self._lifecycle.apply(current, event, self._clock(), reason)
            saved = await self._store.update_booking_status(
                booking_id,
                updated.status,
                {
                    "confirmed_at": updated.confirmed_at,
                    "cancelled_at": updated.cancelled_at,
                },
                cancel_reason=updated.cancel_reason,
                notes=updated.notes,
            )
            self.invalidate(current.restaurant_id, current.date)

        logger.info("Booking %s is now %s", saved.confirmation_code, saved.status.value)
        return saved

    # ------------------------------------------------------------------ #
    # Lookups
    # ------------------------------------------------------------------ #

    async def get_booking(self, booking_id: str) -> Booking:
        return await self._store.get_booking(booking_id)

    async def find_by_confirmation_code(self, restaurant_id: str, code: str) -> Booking:
        code = code.strip().upper()
        for booking in await self._store.list_restaurant_bookings(restaurant_id):
            if booking.confirmation_code == code:
                return booking
        raise NotFoundError(f"No booking with code {code} at {restaurant_id}")

    async def restaurant_stats(self, restaurant_id: str) -> BookingStats:
        """Booking counts by status for one restaurant."""
        bookings = await self._store.list_restaurant_bookings(restaurant_id)
        counts = {status: 0 for status in BookingStatus}
        for booking in bookings:
            counts[booking.status] += 1
        return BookingStats(
            restaurant_id=restaurant_id,
            total_bookings=len(bookings),
            pending_bookings=counts[BookingStatus.PENDING],
            confirmed_bookings=counts[BookingStatus.CONFIRMED],
            completed_bookings=counts[BookingStatus.COMPLETED],
            cancelled_bookings=counts[BookingStatus.CANCELLED],
            no_shows=counts[BookingStatus.NO_SHOW],
        )
