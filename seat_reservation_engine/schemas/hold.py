"""
Pydantic schemas for seat holds.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator


class HoldCreateRequest(BaseModel):
    """
    Request to hold a set of seats.

    Seats are given either by id or by label; labels need ``show_id``.
    A session token is generated when the client does not supply one.
    """
    seat_ids: List[UUID] = Field(default_factory=list)
    seat_labels: List[str] = Field(default_factory=list)
    show_id: Optional[UUID] = None
    session_token: Optional[str] = Field(None, min_length=8, max_length=128)
    ttl_seconds: Optional[int] = Field(None, ge=1, description="Defaults to the configured hold TTL")

    @model_validator(mode="after")
    def check_labels_have_show(self):
        if self.seat_labels and self.show_id is None:
            raise ValueError("show_id is required when seats are given by label")
        return self


class HoldExtendRequest(BaseModel):
    """Request to push a checkout's hold expiry forward."""
    additional_seconds: int = Field(..., ge=1)


class HoldResponse(BaseModel):
    """One held seat."""
    seat_id: UUID
    price_at_hold: int


class HoldSetResponse(BaseModel):
    """All live holds for one checkout attempt."""
    session_token: str
    show_id: UUID
    expires_at: datetime
    seats: List[HoldResponse]
    total_amount: int


class HoldCancelResponse(BaseModel):
    session_token: str
    cancelled_count: int
