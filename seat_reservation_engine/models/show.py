"""
Show model: the performance a seat map belongs to.
"""

from datetime import datetime
from typing import List, TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

if TYPE_CHECKING:
    from .seat import Seat


class Show(Base):
    """A single performance. Catalog details live elsewhere; this row anchors seats, holds and bookings."""

    __tablename__ = "shows"

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    starts_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="gbp")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    seats: Mapped[List["Seat"]] = relationship(
        "Seat",
        back_populates="show",
        cascade="all, delete-orphan",
        order_by="Seat.label",
    )

    def __repr__(self) -> str:
        return f"<Show(id={self.id}, title='{self.title}')>"
