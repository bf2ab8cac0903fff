"""
Pydantic schemas for bookings.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator


class BookingSeatResponse(BaseModel):
    """Schema for a seat within a booking."""
    model_config = ConfigDict(from_attributes=True)

    seat_id: UUID
    price_paid: int


class BookingResponse(BaseModel):
    """Schema for booking response."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    show_id: UUID
    session_token: str
    customer_email: str
    customer_name: str
    payment_reference: str
    validation_code: str
    total_amount: int
    amount_paid: Optional[int] = None
    currency: str
    status: str
    seats: List[BookingSeatResponse]
    created_at: datetime
    cancelled_at: Optional[datetime] = None

    @field_validator("status", mode="before")
    @classmethod
    def status_value(cls, value):
        return value.value if isinstance(value, Enum) else value


class BookingCancelRequest(BaseModel):
    """Administrative cancellation or refund of a booking."""
    refunded: bool = False
