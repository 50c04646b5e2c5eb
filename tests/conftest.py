"""Shared test fixtures and helpers."""

from datetime import datetime
from typing import Optional

import pytest

from tablebook.booking.holds import HoldRegistry
from tablebook.booking.lifecycle import BookingLifecycle
from tablebook.schemas.booking_schema import (
    Booking,
    BookingRequest,
    BookingStatus,
    CustomerContact,
)
from tablebook.schemas.restaurant_schema import (
    BookingSettings,
    Restaurant,
    Table,
    WorkingHours,
)
from tablebook.service import BookingService
from tablebook.storage.memory import InMemoryBookingStore

# Monday morning; DAY is the Wednesday after
NOW = datetime(2026, 10, 19, 10, 0)
DAY = "2026-10-21"
TOMORROW = "2026-10-20"
RESTAURANT_ID = "r-1"


class FakeClock:
    """Mutable clock for services under test."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def make_restaurant(
    restaurant_id: str = RESTAURANT_ID,
    hours: Optional[WorkingHours] = None,
    **settings_overrides,
) -> Restaurant:
    """Helper to create a Restaurant open 12:00-23:00 every day."""
    return Restaurant(
        id=restaurant_id,
        name="Test Bistro",
        working_hours=hours or WorkingHours.every_day("12:00", "23:00"),
        booking_settings=BookingSettings(**settings_overrides),
    )


def make_table(
    table_id: str = "t-1",
    capacity: int = 4,
    is_active: bool = True,
    restaurant_id: str = RESTAURANT_ID,
) -> Table:
    return Table(
        id=table_id,
        restaurant_id=restaurant_id,
        number=table_id,
        capacity=capacity,
        is_active=is_active,
    )


def make_booking(
    time_slot: str = "19:00",
    table_id: str = "t-1",
    date: str = DAY,
    duration: int = 120,
    status: BookingStatus = BookingStatus.CONFIRMED,
    booking_id: Optional[str] = None,
    party_size: int = 2,
    code: Optional[str] = None,
) -> Booking:
    """Helper to create a Booking with sensible defaults."""
    booking_id = booking_id or f"b-{table_id}-{time_slot}"
    return Booking(
        id=booking_id,
        restaurant_id=RESTAURANT_ID,
        table_id=table_id,
        date=date,
        time_slot=time_slot,
        duration=duration,
        party_size=party_size,
        status=status,
        confirmation_code=code or booking_id.upper()[-6:],
        customer_name="Anna Petrova",
        customer_phone="+79000000000",
    )


def make_request(
    time_slot: str = "19:00",
    table_id: str = "t-1",
    party_size: int = 2,
    date: str = DAY,
    reservation_token: Optional[str] = None,
) -> BookingRequest:
    return BookingRequest(
        restaurant_id=RESTAURANT_ID,
        date=date,
        time_slot=time_slot,
        table_id=table_id,
        party_size=party_size,
        customer=CustomerContact(
            name="Anna Petrova", phone="+7 (900) 000-00-00", email="Anna@Example.com",
        ),
        reservation_token=reservation_token,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    store = InMemoryBookingStore()
    store.add_restaurant(make_restaurant())
    return store


@pytest.fixture
def lifecycle():
    return BookingLifecycle()


@pytest.fixture
def service(store, clock):
    return BookingService(store, clock=clock, holds=HoldRegistry(timeout_minutes=10))
