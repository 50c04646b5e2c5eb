"""Abstract storage collaborator consumed by the booking core."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from tablebook.schemas.booking_schema import Booking, BookingStatus
from tablebook.schemas.restaurant_schema import Restaurant, Table


class BookingStore(ABC):
    """Document storage for restaurants, tables and bookings.

    Implementations raise ``NotFoundError`` for missing documents,
    ``ConstraintViolation`` when an insert would overlap an active booking
    on the same table, and ``DuplicateConfirmationCode`` when an insert
    reuses a confirmation code already taken within the restaurant.
    """

    @abstractmethod
    async def revision(self, restaurant_id: str) -> int:
        """Counter that changes on every write touching the restaurant.

        Covers the restaurant document, its tables and its bookings,
        whichever process made the write.
        """

    @abstractmethod
    async def get_restaurant(self, restaurant_id: str) -> Restaurant: ...

    @abstractmethod
    async def list_active_tables(self, restaurant_id: str) -> list[Table]: ...

    @abstractmethod
    async def list_bookings(
        self,
        restaurant_id: str,
        date: str,
        exclude_status: Optional[BookingStatus] = BookingStatus.CANCELLED,
    ) -> list[Booking]: ...

    @abstractmethod
    async def list_restaurant_bookings(self, restaurant_id: str) -> list[Booking]: ...

    @abstractmethod
    async def list_confirmation_codes(self, restaurant_id: str) -> set[str]: ...

    @abstractmethod
    async def get_booking(self, booking_id: str) -> Booking: ...

    @abstractmethod
    async def insert_booking(self, booking: Booking) -> Booking: ...

    @abstractmethod
    async def update_booking_status(
        self,
        booking_id: str,
        new_status: BookingStatus,
        timestamps: dict[str, Optional[datetime]],
        cancel_reason: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Booking: ...
