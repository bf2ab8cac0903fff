"""
Booking model: the durable record of a completed purchase.
"""

import enum
import uuid
from datetime import datetime
from typing import List, Optional, TYPE_CHECKING

from sqlalchemy import CheckConstraint, DateTime, Enum, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

if TYPE_CHECKING:
    from .booking_seat import BookingSeat


class BookingStatus(enum.Enum):
    """Enumeration for booking status."""
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class Booking(Base):
    """
    Created exactly once per payment reference by the confirmation service.

    Only ``status`` (and ``cancelled_at``) change after creation.
    """

    __tablename__ = "bookings"

    show_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("shows.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    session_token: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    customer_email: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_name: Mapped[str] = mapped_column(String(200), nullable=False)

    # Idempotency key for confirmation
    payment_reference: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    validation_code: Mapped[str] = mapped_column(String(16), nullable=False, unique=True)

    total_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    amount_paid: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="gbp")

    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus),
        default=BookingStatus.CONFIRMED,
        nullable=False,
        index=True
    )
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    seats: Mapped[List["BookingSeat"]] = relationship(
        "BookingSeat",
        back_populates="booking",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="ck_bookings_total_amount_non_negative"),
    )

    @property
    def seat_ids(self) -> List[uuid.UUID]:
        return [booking_seat.seat_id for booking_seat in self.seats]

    @property
    def is_active(self) -> bool:
        return self.status == BookingStatus.CONFIRMED

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, payment_reference='{self.payment_reference}', "
            f"seats={len(self.seats)}, status={self.status.value})>"
        )
