from tablebook.storage.base import BookingStore
from tablebook.storage.memory import InMemoryBookingStore

__all__ = ["BookingStore", "InMemoryBookingStore"]
