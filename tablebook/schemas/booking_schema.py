"""Booking, booking request and availability data models."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from tablebook.scheduling.timeutils import format_date, from_minutes, to_minutes


class BookingStatus(str, Enum):
    """Lifecycle status of a booking."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no_show"


ACTIVE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})
TERMINAL_STATUSES = frozenset(
    {BookingStatus.CANCELLED, BookingStatus.COMPLETED, BookingStatus.NO_SHOW}
)


class CustomerContact(BaseModel):
    """Customer contact details attached to a booking."""

    name: str = Field(min_length=1)
    phone: str
    email: Optional[str] = None
    customer_id: Optional[str] = None


class BookingRequest(BaseModel):
    """A customer's request to book one table at one slot."""

    restaurant_id: str
    date: str
    time_slot: str
    table_id: str
    party_size: int
    customer: CustomerContact
    special_requests: Optional[str] = None
    reservation_token: Optional[str] = None

    @field_validator("date")
    @classmethod
    def normalize_date(cls, value: str) -> str:
        return format_date(value)

    @field_validator("time_slot")
    @classmethod
    def normalize_time_slot(cls, value: str) -> str:
        return from_minutes(to_minutes(value))


class Booking(BaseModel):
    """A persisted booking record."""

    id: str
    restaurant_id: str
    table_id: str
    date: str
    time_slot: str
    duration: int = Field(default=120, gt=0)
    party_size: int = Field(gt=0)
    status: BookingStatus = BookingStatus.PENDING
    confirmation_code: str

    customer_name: str
    customer_phone: str
    customer_email: Optional[str] = None
    customer_id: Optional[str] = None

    special_requests: Optional[str] = None
    notes: Optional[str] = None

    created_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None

    @field_validator("date")
    @classmethod
    def normalize_date(cls, value: str) -> str:
        return format_date(value)

    @field_validator("time_slot")
    @classmethod
    def normalize_time_slot(cls, value: str) -> str:
        return from_minutes(to_minutes(value))

    @property
    def start_minutes(self) -> int:
        return to_minutes(self.time_slot)

    @property
    def end_minutes(self) -> int:
        return self.start_minutes + self.duration

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES


class TimeSlot(BaseModel):
    """Derived per-slot availability, recomputed on every query."""

    time: str
    available_tables: int
    total_tables: int
    is_available: bool
    free_table_ids: list[str] = Field(default_factory=list)


class SlotHold(BaseModel):
    """Short-lived claim on one table for one slot."""

    reservation_token: str
    restaurant_id: str
    table_id: str
    date: str
    time_slot: str
    duration: int
    expires_at: datetime

    @property
    def start_minutes(self) -> int:
        return to_minutes(self.time_slot)

    @property
    def end_minutes(self) -> int:
        return self.start_minutes + self.duration


class BookingStats(BaseModel):
    """Booking counts for a single restaurant."""

    restaurant_id: str
    total_bookings: int = 0
    pending_bookings: int = 0
    confirmed_bookings: int = 0
    completed_bookings: int = 0
    cancelled_bookings: int = 0
    no_shows: int = 0
