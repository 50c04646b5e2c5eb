"""
Error taxonomy surfaced to callers of the booking core.

- ``FormatError``: malformed time, date, contact or request, always a caller bug.
- ``BookingError`` subclasses: user-correctable admission failures, plus
  ``SlotNoLongerAvailable`` when a race for a table was lost.
- ``LifecycleError`` / ``InvalidTransition``: a status change not allowed
  from the booking's current status.
- ``StorageError`` subclasses: collaborator failures. The only write the core retries
  is an insert whose confirmation code collided.
"""


class TableBookError(Exception):
    """Base class for every error raised by the booking core."""


class FormatError(TableBookError, ValueError):
    """Raised when a clock time, calendar date or booking request is malformed."""


class BookingError(TableBookError):
    """Base class for booking admission failures."""


class AdvanceWindowViolation(BookingError):
    """The requested slot is too soon or too far ahead."""


class CapacityViolation(BookingError):
    """The party does not fit the chosen table or the restaurant limit."""


class SlotNoLongerAvailable(BookingError):
    """The chosen table is taken for an overlapping interval.

    Callers should re-fetch availability; retrying the same write is unsafe.
    """


class BookingDisabled(BookingError):
    """The restaurant does not accept online bookings."""


class LifecycleError(TableBookError):
    """Base class for booking status change failures."""


class InvalidTransition(LifecycleError):
    """Raised when an event is not valid for the booking's current status."""


class StorageError(TableBookError):
    """Generic storage collaborator failure."""


class NotFoundError(StorageError):
    """The requested document does not exist."""


class ConstraintViolation(StorageError):
    """A write was rejected because it would break a storage constraint."""


class DuplicateConfirmationCode(StorageError):
    """The confirmation code is already used by another booking of the restaurant."""


class ConfirmationCodeExhausted(StorageError):
    """No unique confirmation code could be generated."""
