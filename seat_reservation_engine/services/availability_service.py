"""
Availability Calculator: derives available / held / sold per seat.

The status of every seat is computed by one SELECT so the whole map comes
from a single snapshot.
"""

import enum
import logging
from collections import Counter
from datetime import datetime
from typing import Dict, Optional
from uuid import UUID

from sqlalchemy import case, exists, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..models import Booking, BookingSeat, BookingStatus, Hold, HoldStatus, Seat, Show
from ..utils.clock import utcnow
from ..utils.exceptions import ShowNotFoundError

logger = logging.getLogger(__name__)


class SeatAvailability(str, enum.Enum):
    AVAILABLE = "available"
    HELD = "held"
    SOLD = "sold"


class AvailabilityService:
    """Read-only view combining inventory, holds and bookings."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    @staticmethod
    def status_query(show_id: UUID, now: datetime):
        """
        One row per seat of the show with its derived status.

        Sold wins over held: a seat in a confirmed booking is sold whatever
        its hold rows say. Expired-but-unswept holds do not count as held.
        """
        sold = exists().where(
            BookingSeat.seat_id == Seat.id,
            BookingSeat.booking_id == Booking.id,
            Booking.status == BookingStatus.CONFIRMED,
        )
        held = exists().where(
            Hold.seat_id == Seat.id,
            Hold.status == HoldStatus.ACTIVE,
            Hold.expires_at > now,
        )
        status = case(
            (sold, SeatAvailability.SOLD.value),
            (held, SeatAvailability.HELD.value),
            else_=SeatAvailability.AVAILABLE.value,
        )
        return select(Seat.id, status.label("status")).where(Seat.show_id == show_id)

    async def get_availability(self, show_id: UUID, now: Optional[datetime] = None) -> Dict[UUID, SeatAvailability]:
        """
        Map every seat of ``show_id`` to its availability.

        Raises:
            ShowNotFoundError: If the show does not exist
        """
        async with self.session_factory() as session:
            if await session.get(Show, show_id) is None:
                raise ShowNotFoundError(str(show_id))

            rows = await session.execute(self.status_query(show_id, now or utcnow()))
            return {seat_id: SeatAvailability(status) for seat_id, status in rows.all()}

    @staticmethod
    def count_by_status(availability: Dict[UUID, SeatAvailability]) -> Dict[str, int]:
        counts = Counter(availability.values())
        summary = {status.value: counts.get(status, 0) for status in SeatAvailability}
        summary["total"] = len(availability)
        return summary

    async def summarize(self, show_id: UUID) -> Dict[str, int]:
        """Count seats per availability status."""
        return self.count_by_status(await self.get_availability(show_id))
