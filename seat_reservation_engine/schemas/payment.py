"""
Pydantic schemas for checkout and payment notifications.
"""

from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class CheckoutRequest(BaseModel):
    """Start payment for the live holds of a checkout attempt."""
    session_token: str = Field(..., min_length=8, max_length=128)


class CheckoutResponse(BaseModel):
    """Payment session handed back to the client."""
    session_token: str
    payment_session_id: str
    redirect_url: str
    amount: int
    currency: str


class PaymentOutcomeEvent(BaseModel):
    """
    Provider-neutral payment notification.

    ``session_token`` and ``show_id`` are the metadata attached when the
    payment session was created.
    """
    event_id: Optional[str] = None
    outcome: Literal["succeeded", "failed"]
    payment_reference: str = Field(..., min_length=1, max_length=255)
    session_token: str = Field(..., min_length=1, max_length=128)
    show_id: Optional[UUID] = None
    amount_paid: int = Field(..., ge=0)
    currency: Optional[str] = None
    payer_email: str = Field("", max_length=255)
    payer_name: str = Field("", max_length=200)


class WebhookAck(BaseModel):
    """Acknowledgement returned to the payment provider."""
    received: bool = True
    action: str
    booking_id: Optional[UUID] = None
    validation_code: Optional[str] = None
