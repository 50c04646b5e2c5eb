"""
Temporary slot holds.

A hold claims one table for one slot while the customer fills in the
booking form. Unexpired holds hide their table from other callers'
availability; expired holds are purged lazily on every read.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Optional

from tablebook.config import settings
from tablebook.schemas.booking_schema import SlotHold

logger = logging.getLogger(__name__)


class HoldRegistry:
    """In-process store of active holds keyed by reservation token."""

    def __init__(self, timeout_minutes: Optional[int] = None) -> None:
        self._timeout = timedelta(
            minutes=timeout_minutes or settings.booking.hold_timeout_minutes
        )
        self._holds: dict[str, SlotHold] = {}

    @property
    def timeout_seconds(self) -> int:
        return int(self._timeout.total_seconds())

    def create(
        self,
        restaurant_id: str,
        table_id: str,
        date: str,
        time_slot: str,
        duration: int,
        now: datetime,
    ) -> SlotHold:
        hold = SlotHold(
            reservation_token=f"HOLD-{uuid.uuid4().hex[:12]}",
            restaurant_id=restaurant_id,
            table_id=table_id,
            date=date,
            time_slot=time_slot,
            duration=duration,
            expires_at=now + self._timeout,
        )
        self._holds[hold.reservation_token] = hold
        logger.info(
            "Hold %s placed on table %s at %s %s",
            hold.reservation_token, table_id, date, time_slot,
        )
        return hold

    def purge_expired(self, now: datetime) -> int:
        expired = [token for token, h in self._holds.items() if h.expires_at <= now]
        for token in expired:
            del self._holds[token]
        if expired:
            logger.debug("Purged %d expired hold(s)", len(expired))
        return len(expired)

    def active(
        self,
        restaurant_id: str,
        date: str,
        now: datetime,
        exclude_token: Optional[str] = None,
    ) -> list[SlotHold]:
        """Unexpired holds for one restaurant and date, minus the caller's own."""
        self.purge_expired(now)
        return [
            h for h in self._holds.values()
            if h.restaurant_id == restaurant_id
            and h.date == date
            and h.reservation_token != exclude_token
        ]

    def get(self, token: str, now: datetime) -> Optional[SlotHold]:
        self.purge_expired(now)
        return self._holds.get(token)

    def release(self, token: str) -> bool:
        """Drop a hold. Returns False if it was unknown or already gone."""
        removed = self._holds.pop(token, None)
        if removed is not None:
            logger.info("Hold %s released", token)
        return removed is not None

    def reset(self) -> None:
        """Clear all holds. Used by test fixtures for isolation."""
        self._holds.clear()
