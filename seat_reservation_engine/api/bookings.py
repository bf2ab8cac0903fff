"""
Booking lookup endpoints.
"""

from fastapi import APIRouter, Depends

from ..schemas.booking import BookingResponse
from ..services.confirmation_service import ConfirmationService
from ..utils.dependencies import get_confirmation_service

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.get("/session/{session_token}", response_model=BookingResponse)
async def get_booking_by_session(
    session_token: str,
    confirmation: ConfirmationService = Depends(get_confirmation_service)
):
    """Get the booking created from a checkout attempt, for the success page."""
    booking = (await confirmation.lookup_booking_by_session(session_token)).unwrap()
    return BookingResponse.model_validate(booking)


@router.get("/validation/{code}", response_model=BookingResponse)
async def get_booking_by_validation_code(
    code: str,
    confirmation: ConfirmationService = Depends(get_confirmation_service)
):
    """Get the booking a scanned ticket code belongs to."""
    booking = (await confirmation.lookup_booking_by_validation_code(code)).unwrap()
    return BookingResponse.model_validate(booking)


@router.get("/{payment_reference}", response_model=BookingResponse)
async def get_booking(
    payment_reference: str,
    confirmation: ConfirmationService = Depends(get_confirmation_service)
):
    """Get the booking recorded for a payment reference."""
    booking = (await confirmation.lookup_booking(payment_reference)).unwrap()
    return BookingResponse.model_validate(booking)
