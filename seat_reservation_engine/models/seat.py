"""
Seat model for the inventory of a show's venue map.
"""

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

if TYPE_CHECKING:
    from .show import Show


class Seat(Base):
    """
    A physical seat for one show.

    ``label`` is the externally visible seat key (for example ``A-12``). It is
    unique per show and is translated to ``id`` only by the inventory service.
    """

    __tablename__ = "seats"

    show_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("shows.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    label: Mapped[str] = mapped_column(String(40), nullable=False)
    section: Mapped[str] = mapped_column(String(50), nullable=False)
    row: Mapped[str] = mapped_column(String(10), nullable=False)
    number: Mapped[str] = mapped_column(String(10), nullable=False)

    # Minor currency units (pence)
    base_price: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    is_accessible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    position_x: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    position_y: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    show: Mapped["Show"] = relationship("Show", back_populates="seats")

    __table_args__ = (
        UniqueConstraint("show_id", "label", name="uq_seats_show_label"),
        UniqueConstraint("show_id", "section", "row", "number", name="uq_seats_show_location"),
        CheckConstraint("base_price >= 0", name="ck_seats_base_price_non_negative"),
    )

    def __repr__(self) -> str:
        return (
            f"<Seat(id={self.id}, show_id={self.show_id}, "
            f"label='{self.label}', base_price={self.base_price})>"
        )
