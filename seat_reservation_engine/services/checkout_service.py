"""
Checkout orchestration between the ledger, the payment gateway and the
confirmation coordinator.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from ..config import Settings, get_settings
from ..schemas.payment import PaymentOutcomeEvent
from ..utils.exceptions import PaymentServiceError, ReservationEngineError
from ..utils.result import Err, Ok, Result
from .confirmation_service import ConfirmationResult, ConfirmationService
from .payment_gateway import PaymentGateway, PaymentSession
from .reservation_ledger import ReservationLedger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutSession:
    session_token: str
    payment_session: PaymentSession
    amount: int
    currency: str
    holds_expire_at: datetime


def enqueue_booking_confirmation(booking_id: str) -> None:
    """Queue the confirmation email. Best effort: a failure never affects the booking."""
    try:
        from ..tasks.notification_tasks import send_booking_confirmation_task
        send_booking_confirmation_task.delay(booking_id)
        logger.info(f"Booking confirmation notification queued for {booking_id}")
    except Exception as e:
        logger.warning(f"Failed to queue booking confirmation notification: {e}")


class CheckoutService:
    """Starts payments for held seats and applies payment outcomes."""

    def __init__(
        self,
        ledger: ReservationLedger,
        confirmation: ConfirmationService,
        gateway: PaymentGateway,
        settings: Optional[Settings] = None,
        dispatch_confirmation: Callable[[str], None] = enqueue_booking_confirmation
    ):
        self.ledger = ledger
        self.confirmation = confirmation
        self.gateway = gateway
        self.settings = settings or get_settings()
        self.dispatch_confirmation = dispatch_confirmation

    async def start_checkout(self, session_token: str) -> Result[CheckoutSession, ReservationEngineError]:
        """
        Price the live holds of ``session_token`` and open a payment session.

        Returns ``Err(HoldNotFoundError)`` when the holds have lapsed and
        ``Err(PaymentServiceError)`` when the provider is unavailable.
        """
        holds = await self.ledger.get_active_holds(session_token)
        if isinstance(holds, Err):
            return holds
        hold_set = holds.value

        currency = hold_set.currency or self.settings.currency
        try:
            payment_session = await self.gateway.create_payment_session(
                hold_set.total_amount,
                currency,
                {
                    "session_token": session_token,
                    "show_id": str(hold_set.show_id),
                    "seat_ids": ",".join(sorted(str(seat_id) for seat_id in hold_set.seat_ids)),
                },
            )
        except PaymentServiceError as e:
            logger.error(f"Payment session for {session_token} failed: {e}")
            return Err(e)
        except ValueError as e:
            logger.error(f"Payment session for {session_token} rejected: {e}")
            return Err(PaymentServiceError(str(e)))

        logger.info(
            f"Checkout {session_token} started: {hold_set.total_amount} {currency}, "
            f"payment session {payment_session.session_id}"
        )
        return Ok(CheckoutSession(
            session_token=session_token,
            payment_session=payment_session,
            amount=hold_set.total_amount,
            currency=currency,
            holds_expire_at=hold_set.expires_at,
        ))

    async def handle_payment_outcome(
        self,
        event: PaymentOutcomeEvent
    ) -> Result[Optional[ConfirmationResult], ReservationEngineError]:
        """
        Apply a verified payment notification.

        Failed payments change nothing; the holds lapse on their own. A
        succeeded payment is confirmed synchronously and the booking is
        returned to the caller.
        """
        if event.outcome != "succeeded":
            logger.info(
                f"Payment {event.payment_reference} for {event.session_token} failed; holds left to expire"
            )
            return Ok(None)

        result = await self.confirmation.confirm_reservation(
            event.session_token,
            event.payment_reference,
            event.payer_email,
            event.payer_name,
            amount_paid=event.amount_paid,
            currency_paid=event.currency,
        )

        if isinstance(result, Ok) and result.value.created:
            self.dispatch_confirmation(str(result.value.booking.id))
        return result
