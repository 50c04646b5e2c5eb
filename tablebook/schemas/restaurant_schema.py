"""Restaurant, working-hours and table data models."""

from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

WEEKDAYS = (
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
)


class TableType(str, Enum):
    INDOOR = "indoor"
    OUTDOOR = "outdoor"
    PRIVATE = "private"
    BAR = "bar"
    VIP = "vip"


class _CamelModel(BaseModel):
    """Accepts and emits the camelCase keys used by stored calendars."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DayHours(_CamelModel):
    """Opening hours for one weekday."""

    is_open: bool
    open_time: Optional[str] = None
    close_time: Optional[str] = None
    break_start: Optional[str] = None
    break_end: Optional[str] = None


class WorkingHours(_CamelModel):
    """Weekly schedule keyed by lower-case weekday name."""

    monday: DayHours
    tuesday: DayHours
    wednesday: DayHours
    thursday: DayHours
    friday: DayHours
    saturday: DayHours
    sunday: DayHours

    def for_date(self, day: date) -> DayHours:
        return getattr(self, WEEKDAYS[day.weekday()])

    @classmethod
    def every_day(
        cls,
        open_time: str,
        close_time: str,
        closed: tuple[str, ...] = (),
    ) -> "WorkingHours":
        """Build a schedule with the same hours on every open day."""
        return cls(**{
            name: DayHours(
                is_open=name not in closed,
                open_time=None if name in closed else open_time,
                close_time=None if name in closed else close_time,
            )
            for name in WEEKDAYS
        })


class BookingSettings(_CamelModel):
    """Per-restaurant booking policy."""

    is_online_booking_enabled: bool = True
    max_advance_booking_days: int = Field(default=30, ge=0)
    min_advance_booking_hours: int = Field(default=2, ge=0)
    max_party_size: int = Field(default=20, ge=1)
    auto_confirm_bookings: bool = False
    cancellation_policy: str = ""
    booking_duration_minutes: Optional[int] = Field(default=None, ge=1, lt=24 * 60)


class Restaurant(_CamelModel):
    """Restaurant record, read-only to the booking core."""

    id: str
    name: str
    working_hours: WorkingHours
    booking_settings: BookingSettings = Field(default_factory=BookingSettings)


class Table(_CamelModel):
    """A bookable table belonging to one restaurant."""

    id: str
    restaurant_id: str
    number: str = ""
    capacity: int = Field(gt=0)
    type: TableType = TableType.INDOOR
    location: Optional[str] = None
    is_active: bool = True
