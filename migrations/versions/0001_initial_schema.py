"""initial schema: shows, seats, holds, bookings

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

hold_status = sa.Enum("ACTIVE", "CONFIRMED", "EXPIRED", "CANCELLED", name="holdstatus")
booking_status = sa.Enum("CONFIRMED", "CANCELLED", "REFUNDED", name="bookingstatus")


def timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "shows",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "seats",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("show_id", sa.Uuid(), nullable=False),
        sa.Column("label", sa.String(length=40), nullable=False),
        sa.Column("section", sa.String(length=50), nullable=False),
        sa.Column("row", sa.String(length=10), nullable=False),
        sa.Column("number", sa.String(length=10), nullable=False),
        sa.Column("base_price", sa.Integer(), nullable=False),
        sa.Column("is_accessible", sa.Boolean(), nullable=False),
        sa.Column("position_x", sa.Integer(), nullable=False),
        sa.Column("position_y", sa.Integer(), nullable=False),
        *timestamps(),
        sa.CheckConstraint("base_price >= 0", name="ck_seats_base_price_non_negative"),
        sa.ForeignKeyConstraint(["show_id"], ["shows.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("show_id", "label", name="uq_seats_show_label"),
        sa.UniqueConstraint("show_id", "section", "row", "number", name="uq_seats_show_location"),
    )
    op.create_index("ix_seats_show_id", "seats", ["show_id"])

    op.create_table(
        "holds",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("seat_id", sa.Uuid(), nullable=False),
        sa.Column("show_id", sa.Uuid(), nullable=False),
        sa.Column("session_token", sa.String(length=128), nullable=False),
        sa.Column("status", hold_status, nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("price_at_hold", sa.Integer(), nullable=False),
        sa.Column("released_at", sa.DateTime(timezone=True), nullable=True),
        *timestamps(),
        sa.CheckConstraint("price_at_hold >= 0", name="ck_holds_price_non_negative"),
        sa.ForeignKeyConstraint(["seat_id"], ["seats.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["show_id"], ["shows.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_holds_show_id", "holds", ["show_id"])
    op.create_index("ix_holds_session_token", "holds", ["session_token"])
    op.create_index("ix_holds_seat_status", "holds", ["seat_id", "status"])
    op.create_index("ix_holds_expires_status", "holds", ["expires_at", "status"])
    # At most one ACTIVE hold per seat
    op.create_index(
        "uq_holds_active_seat",
        "holds",
        ["seat_id"],
        unique=True,
        postgresql_where=sa.text("status = 'ACTIVE'"),
        sqlite_where=sa.text("status = 'ACTIVE'"),
    )

    op.create_table(
        "bookings",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("show_id", sa.Uuid(), nullable=False),
        sa.Column("session_token", sa.String(length=128), nullable=False),
        sa.Column("customer_email", sa.String(length=255), nullable=False),
        sa.Column("customer_name", sa.String(length=200), nullable=False),
        sa.Column("payment_reference", sa.String(length=255), nullable=False),
        sa.Column("validation_code", sa.String(length=16), nullable=False),
        sa.Column("total_amount", sa.Integer(), nullable=False),
        sa.Column("amount_paid", sa.Integer(), nullable=True),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("status", booking_status, nullable=False),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        *timestamps(),
        sa.CheckConstraint("total_amount >= 0", name="ck_bookings_total_amount_non_negative"),
        sa.ForeignKeyConstraint(["show_id"], ["shows.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("payment_reference"),
        sa.UniqueConstraint("validation_code"),
    )
    op.create_index("ix_bookings_show_id", "bookings", ["show_id"])
    op.create_index("ix_bookings_session_token", "bookings", ["session_token"])
    op.create_index("ix_bookings_status", "bookings", ["status"])

    op.create_table(
        "booking_seats",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("booking_id", sa.Uuid(), nullable=False),
        sa.Column("seat_id", sa.Uuid(), nullable=False),
        sa.Column("price_paid", sa.Integer(), nullable=False),
        *timestamps(),
        sa.ForeignKeyConstraint(["booking_id"], ["bookings.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["seat_id"], ["seats.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("booking_id", "seat_id", name="uq_booking_seats_booking_seat"),
    )
    op.create_index("ix_booking_seats_booking_id", "booking_seats", ["booking_id"])
    op.create_index("ix_booking_seats_seat_id", "booking_seats", ["seat_id"])


def downgrade() -> None:
    op.drop_table("booking_seats")
    op.drop_table("bookings")
    op.drop_table("holds")
    op.drop_table("seats")
    op.drop_table("shows")
    booking_status.drop(op.get_bind(), checkfirst=True)
    hold_status.drop(op.get_bind(), checkfirst=True)
