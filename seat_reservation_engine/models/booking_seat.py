"""
BookingSeat model linking bookings to seats with the price paid.
"""

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Integer, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

if TYPE_CHECKING:
    from .booking import Booking


class BookingSeat(Base):
    """BookingSeat model for linking bookings to specific seats."""

    __tablename__ = "booking_seats"

    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    seat_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("seats.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    price_paid: Mapped[int] = mapped_column(Integer, nullable=False)

    booking: Mapped["Booking"] = relationship("Booking", back_populates="seats")

    __table_args__ = (
        UniqueConstraint("booking_id", "seat_id", name="uq_booking_seats_booking_seat"),
    )

    def __repr__(self) -> str:
        return (
            f"<BookingSeat(id={self.id}, booking_id={self.booking_id}, "
            f"seat_id={self.seat_id}, price_paid={self.price_paid})>"
        )
