"""
Database models for the seat reservation engine.
"""

from .base import Base
from .show import Show
from .seat import Seat
from .hold import Hold, HoldStatus
from .booking import Booking, BookingStatus
from .booking_seat import BookingSeat

__all__ = [
    "Base",
    "Show",
    "Seat",
    "Hold",
    "HoldStatus",
    "Booking",
    "BookingStatus",
    "BookingSeat",
]
