"""
Finite state machine for booking status changes.

Every transition is listed explicitly with an optional time guard. Events
with no matching transition from the booking's status, or whose guard
fails, are rejected with ``InvalidTransition`` naming what is allowed.

Usage:
    machine = BookingLifecycle()
    confirmed = machine.apply(booking, BookingEvent.CONFIRM, now=datetime.now())
    assert confirmed.status == BookingStatus.CONFIRMED
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from tablebook.config import settings
from tablebook.errors import InvalidTransition
from tablebook.scheduling.timeutils import slot_datetime
from tablebook.schemas.booking_schema import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    Booking,
    BookingStatus,
)

logger = logging.getLogger(__name__)


class BookingEvent(str, Enum):
    """Actions staff or customers can take on a booking."""
    CONFIRM = "confirm"
    REJECT = "reject"
    CANCEL = "cancel"
    COMPLETE = "complete"
    NO_SHOW = "no_show"


Guard = Callable[[Booking, datetime], bool]


def slot_in_future(booking: Booking, now: datetime) -> bool:
    return slot_datetime(booking.date, booking.time_slot) > now


def slot_in_past(booking: Booking, now: datetime) -> bool:
    return slot_datetime(booking.date, booking.time_slot) <= now


@dataclass(frozen=True)
class Transition:
    """A single valid status transition."""
    from_status: BookingStatus
    to_status: BookingStatus
    event: BookingEvent
    guard: Optional[Guard] = None
    guard_reason: str = ""


class BookingLifecycle:
    """Applies events to bookings, returning the updated record."""

    TRANSITIONS: list[Transition] = [
        Transition(BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingEvent.CONFIRM),
        Transition(BookingStatus.PENDING, BookingStatus.CANCELLED, BookingEvent.REJECT),
        Transition(BookingStatus.PENDING, BookingStatus.CANCELLED, BookingEvent.CANCEL),

        Transition(BookingStatus.CONFIRMED, BookingStatus.CANCELLED, BookingEvent.CANCEL,
                   slot_in_future, "the booking has already started"),
        Transition(BookingStatus.CONFIRMED, BookingStatus.COMPLETED, BookingEvent.COMPLETE,
                   slot_in_past, "the booking has not started yet"),
        Transition(BookingStatus.CONFIRMED, BookingStatus.NO_SHOW, BookingEvent.NO_SHOW,
                   slot_in_past, "the booking has not started yet"),
    ]

    def valid_events(self, status: BookingStatus) -> list[BookingEvent]:
        """Return all events defined from ``status``, ignoring guards."""
        return [t.event for t in self.TRANSITIONS if t.from_status == status]

    def resolve(self, booking: Booking, event: BookingEvent, now: datetime) -> Transition:
        """Find the transition ``event`` triggers for ``booking``.

        Raises:
            InvalidTransition: If the event is not allowed right now.
        """
        if booking.status in TERMINAL_STATUSES:
            raise InvalidTransition(
                f"Booking {booking.id} is {booking.status.value} and can no longer change"
            )

        failed_guard = None
        for t in self.TRANSITIONS:
            if t.from_status != booking.status or t.event != event:
                continue
            if t.guard is not None and not t.guard(booking, now):
                failed_guard = t
                continue
            return t

        if failed_guard is not None:
            raise InvalidTransition(
                f"Cannot {event.value} booking {booking.id}: {failed_guard.guard_reason}"
            )
        valid = [e.value for e in self.valid_events(booking.status)]
        raise InvalidTransition(
            f"No valid transition from '{booking.status.value}' "
            f"with event '{event.value}'. Valid events: {valid}"
        )

    def apply(
        self,
        booking: Booking,
        event: BookingEvent,
        now: datetime,
        reason: Optional[str] = None,
    ) -> Booking:
        """Return a copy of ``booking`` with the event's status and timestamps set.

        A ``reason`` is recorded in ``notes`` for every event, and also as
        ``cancel_reason`` when the booking is cancelled.
        """
        transition = self.resolve(booking, event, now)
        update: dict = {"status": transition.to_status}
        if reason is not None:
            update["notes"] = reason
        if transition.to_status == BookingStatus.CONFIRMED:
            update["confirmed_at"] = now
        elif transition.to_status == BookingStatus.CANCELLED:
            update["cancelled_at"] = now
            update["cancel_reason"] = reason

        logger.debug(
            "Booking %s: %s -> %s (event: %s)",
            booking.id, booking.status.value, transition.to_status.value, event.value,
        )
        return booking.model_copy(update=update)


def _hours_until(booking: Booking, now: datetime) -> float:
    delta: timedelta = slot_datetime(booking.date, booking.time_slot) - now
    return delta.total_seconds() / 3600


def is_cancellable(booking: Booking, now: datetime) -> bool:
    """Active and more than ``CANCELLABLE_HOURS`` away."""
    return (
        booking.status in ACTIVE_STATUSES
        and _hours_until(booking, now) > settings.booking.cancellable_hours
    )


def is_editable(booking: Booking, now: datetime) -> bool:
    """Active and more than ``EDITABLE_HOURS`` away."""
    return (
        booking.status in ACTIVE_STATUSES
        and _hours_until(booking, now) > settings.booking.editable_hours
    )
