"""
Hold model: a time-bounded claim on one seat by one checkout attempt.
"""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Enum, ForeignKey, Index, Integer, String, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class HoldStatus(enum.Enum):
    """Enumeration for hold status. Only ACTIVE can transition; the rest are terminal."""
    ACTIVE = "active"
    CONFIRMED = "confirmed"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class Hold(Base):
    """
    One seat held for one session token.

    Rows are never deleted. A hold leaves the active set by a compare-and-set
    on ``status`` to CONFIRMED, EXPIRED or CANCELLED.
    """

    __tablename__ = "holds"

    seat_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("seats.id", ondelete="CASCADE"),
        nullable=False
    )

    show_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("shows.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    session_token: Mapped[str] = mapped_column(String(128), nullable=False, index=True)

    status: Mapped[HoldStatus] = mapped_column(
        Enum(HoldStatus),
        default=HoldStatus.ACTIVE,
        nullable=False
    )

    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Seat base price captured when the hold was placed
    price_at_hold: Mapped[int] = mapped_column(Integer, nullable=False)

    released_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        # At most one ACTIVE hold per seat, enforced by storage
        Index(
            "uq_holds_active_seat",
            "seat_id",
            unique=True,
            sqlite_where=text("status = 'ACTIVE'"),
            postgresql_where=text("status = 'ACTIVE'"),
        ),
        Index("ix_holds_seat_status", "seat_id", "status"),
        Index("ix_holds_expires_status", "expires_at", "status"),
        CheckConstraint("price_at_hold >= 0", name="ck_holds_price_non_negative"),
    )

    @property
    def is_active(self) -> bool:
        return self.status == HoldStatus.ACTIVE

    def __repr__(self) -> str:
        return (
            f"<Hold(id={self.id}, seat_id={self.seat_id}, "
            f"session_token='{self.session_token}', status={self.status.value})>"
        )
