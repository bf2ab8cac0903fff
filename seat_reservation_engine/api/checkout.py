"""
Checkout and payment notification endpoints.
"""

import logging

from fastapi import APIRouter, Depends, Request

from ..config import get_settings
from ..schemas.common import ErrorResponse
from ..schemas.payment import CheckoutRequest, CheckoutResponse, PaymentOutcomeEvent, WebhookAck
from ..services.checkout_service import CheckoutService
from ..services.payment_gateway import SIGNATURE_HEADER, verify_webhook_signature
from ..utils.dependencies import get_checkout_service
from ..utils.exceptions import ReservationExpiredError
from ..utils.result import Err

logger = logging.getLogger(__name__)

router = APIRouter(tags=["checkout"])


@router.post(
    "/checkout",
    response_model=CheckoutResponse,
    responses={410: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
)
async def start_checkout(
    request: CheckoutRequest,
    checkout: CheckoutService = Depends(get_checkout_service)
):
    """Open a payment session for the live holds of a checkout attempt."""
    session = (await checkout.start_checkout(request.session_token)).unwrap()
    return CheckoutResponse(
        session_token=session.session_token,
        payment_session_id=session.payment_session.session_id,
        redirect_url=session.payment_session.redirect_url,
        amount=session.amount,
        currency=session.currency,
    )


@router.post(
    "/webhooks/payments",
    response_model=WebhookAck,
    responses={400: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def payment_webhook(
    request: Request,
    checkout: CheckoutService = Depends(get_checkout_service)
):
    """
    Receive a signed payment outcome from the provider.

    Succeeded payments are confirmed before responding, so the booking exists
    once this returns 200. A storage failure responds 503 and the provider's
    redelivery is absorbed by the payment reference idempotency. A payment
    whose reservation lapsed is acknowledged (it has been escalated) so the
    provider stops redelivering it.
    """
    settings = get_settings()
    payload = await request.body()
    verify_webhook_signature(
        payload,
        request.headers.get(SIGNATURE_HEADER),
        settings.payment_webhook_secret,
        settings.payment_webhook_tolerance_seconds,
    )
    event = PaymentOutcomeEvent.model_validate_json(payload)

    result = await checkout.handle_payment_outcome(event)
    if isinstance(result, Err):
        if isinstance(result.error, ReservationExpiredError):
            logger.warning(f"Acknowledging payment {event.payment_reference} for lapsed reservation {event.session_token}")
            return WebhookAck(action="reservation_expired")
        raise result.error

    confirmation = result.value
    if confirmation is None:
        return WebhookAck(action="ignored")
    return WebhookAck(
        action=confirmation.resolution.value,
        booking_id=confirmation.booking.id,
        validation_code=confirmation.booking.validation_code,
    )
