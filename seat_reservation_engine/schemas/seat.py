"""
Pydantic schemas for shows, seat inventory and availability.
"""

from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, ConfigDict, field_validator


class ShowCreate(BaseModel):
    """Schema for registering a show."""
    title: str = Field(..., min_length=1, max_length=200)
    starts_at: datetime
    currency: str = Field("gbp", min_length=3, max_length=3)

    @field_validator("currency")
    @classmethod
    def lower_currency(cls, value: str) -> str:
        return value.lower()


class ShowResponse(BaseModel):
    """Schema for show response."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    starts_at: datetime
    currency: str
    is_active: bool


class SeatCreate(BaseModel):
    """Schema for provisioning one seat."""
    label: Optional[str] = Field(None, min_length=1, max_length=40, description="External seat key, defaults to section-row-number")
    section: str = Field(..., min_length=1, max_length=50, description="Seat section")
    row: str = Field(..., min_length=1, max_length=10, description="Seat row")
    number: str = Field(..., min_length=1, max_length=10, description="Seat number")
    base_price: int = Field(..., ge=0, description="Price in minor currency units")
    is_accessible: bool = False
    position_x: int = 0
    position_y: int = 0

    @property
    def resolved_label(self) -> str:
        return self.label or f"{self.section}-{self.row}-{self.number}"


class SeatProvisionRequest(BaseModel):
    """Schema for provisioning a show's seat map."""
    seats: List[SeatCreate] = Field(..., min_length=1)


class SeatPriceUpdate(BaseModel):
    """Schema for an administrative price change."""
    base_price: int = Field(..., ge=0)


class SeatResponse(BaseModel):
    """Schema for seat response."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    show_id: UUID
    label: str
    section: str
    row: str
    number: str
    base_price: int
    is_accessible: bool
    position_x: int
    position_y: int


class SeatAvailabilityResponse(BaseModel):
    """Per-seat availability for rendering a seat map."""
    show_id: UUID
    seats: Dict[UUID, str]
    summary: Dict[str, int]
    generated_at: datetime
