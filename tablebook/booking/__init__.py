from tablebook.booking.admission import admit_booking
from tablebook.booking.holds import HoldRegistry
from tablebook.booking.lifecycle import (
    BookingEvent,
    BookingLifecycle,
    is_cancellable,
    is_editable,
)

__all__ = [
    "admit_booking",
    "HoldRegistry",
    "BookingEvent",
    "BookingLifecycle",
    "is_cancellable",
    "is_editable",
]
