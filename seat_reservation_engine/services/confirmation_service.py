"""
Confirmation Coordinator: turns the live holds of a paid checkout into a Booking.

``payment_reference`` is the idempotency key. Payment notifications are
delivered at least once, so every path that finds an existing booking returns
it instead of failing.
"""

import enum
import logging
import secrets
import string
import time
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config import Settings, get_settings
from ..database import is_transient_error
from ..models import Booking, BookingSeat, BookingStatus, Hold, HoldStatus, Show
from ..utils.clock import utcnow
from ..utils.exceptions import (
    BookingNotFoundError,
    ConcurrencyError,
    PersistenceFailureError,
    ReservationEngineError,
    ReservationExpiredError,
)
from ..utils.logging_config import log_business_event, log_escalation, log_performance
from ..utils.result import Err, Ok, Result
from ..utils.retry import retry_on_concurrency_error
from .reservation_ledger import live_holds_query

logger = logging.getLogger(__name__)

VALIDATION_CODE_ALPHABET = string.ascii_uppercase + string.digits


class ConfirmationResolution(str, enum.Enum):
    """How a successful confirmation was reached."""
    CREATED = "created"
    DUPLICATE_REFERENCE = "duplicate_reference"
    CONFIRMED_BY_OTHER = "confirmed_by_other"


@dataclass(frozen=True)
class ConfirmationResult:
    booking: Booking
    resolution: ConfirmationResolution

    @property
    def created(self) -> bool:
        return self.resolution == ConfirmationResolution.CREATED


def generate_validation_code(length: int = 8) -> str:
    """Random uppercase alphanumeric code printed on the ticket."""
    return "".join(secrets.choice(VALIDATION_CODE_ALPHABET) for _ in range(length))


class ConfirmationService:
    """Creates bookings from holds and answers booking lookups."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Optional[Settings] = None
    ):
        self.session_factory = session_factory
        self.settings = settings or get_settings()

    async def confirm_reservation(
        self,
        session_token: str,
        payment_reference: str,
        customer_email: str,
        customer_name: str,
        amount_paid: Optional[int] = None,
        currency_paid: Optional[str] = None
    ) -> Result[ConfirmationResult, ReservationEngineError]:
        """
        Convert the live holds under ``session_token`` into a Booking.

        Args:
            session_token: Checkout attempt whose holds were paid for
            payment_reference: Gateway transaction id, unique per booking
            customer_email: Payer email
            customer_name: Payer name
            amount_paid: Amount the gateway captured, kept for reconciliation
            currency_paid: Currency the gateway reported, checked against the booking

        Returns:
            ``Ok(ConfirmationResult)`` when a booking exists for the payment
            (newly created, already recorded under this reference, or created
            by a concurrent confirmation of the same session).
            ``Err(ReservationExpiredError)`` when no live holds remain; this is
            escalated because the customer has paid.
            ``Err(PersistenceFailureError)`` when storage fails; retrying with
            the same reference is safe.
        """
        started = time.perf_counter()
        try:
            result = await self._confirm(
                session_token, payment_reference, customer_email, customer_name, amount_paid
            )
        except (ConcurrencyError, SQLAlchemyError) as e:
            logger.error(f"Confirmation of {session_token} ({payment_reference}) failed: {e}")
            return Err(PersistenceFailureError("confirm_reservation", str(e)))
        finally:
            log_performance("confirm_reservation", time.perf_counter() - started)

        if isinstance(result, Ok):
            confirmation = result.value
            booking = confirmation.booking
            if confirmation.created:
                log_business_event("booking_confirmed", {
                    "booking_id": str(booking.id),
                    "session_token": session_token,
                    "payment_reference": payment_reference,
                    "seat_count": len(booking.seats),
                    "total_amount": booking.total_amount,
                })
                if amount_paid is not None and amount_paid != booking.total_amount:
                    log_escalation("payment_amount_mismatch", {
                        "booking_id": str(booking.id),
                        "payment_reference": payment_reference,
                        "total_amount": booking.total_amount,
                        "amount_paid": amount_paid,
                    }, severity="WARNING")
                if currency_paid and currency_paid.lower() != booking.currency.lower():
                    log_escalation("payment_currency_mismatch", {
                        "booking_id": str(booking.id),
                        "payment_reference": payment_reference,
                        "currency": booking.currency,
                        "currency_paid": currency_paid,
                    }, severity="WARNING")
            else:
                logger.info(
                    f"Confirmation for {payment_reference} resolved to existing booking "
                    f"{booking.id} ({confirmation.resolution.value})"
                )
        return result

    @retry_on_concurrency_error()
    async def _confirm(
        self,
        session_token: str,
        payment_reference: str,
        customer_email: str,
        customer_name: str,
        amount_paid: Optional[int]
    ) -> Result[ConfirmationResult, ReservationEngineError]:
        try:
            async with self.session_factory.begin() as session:
                return await self._confirm_in(
                    session, session_token, payment_reference, customer_email, customer_name, amount_paid
                )
        except IntegrityError as e:
            # A concurrent delivery of the same payment committed first
            existing = await self._find_booking(Booking.payment_reference == payment_reference)
            if existing is not None:
                return Ok(ConfirmationResult(existing, ConfirmationResolution.DUPLICATE_REFERENCE))
            raise ConcurrencyError(f"Confirmation collided with a concurrent write: {e.orig}") from e
        except DBAPIError as e:
            if is_transient_error(e):
                raise ConcurrencyError(f"Confirmation transaction aborted: {e.orig}") from e
            raise

    async def _confirm_in(
        self,
        session: AsyncSession,
        session_token: str,
        payment_reference: str,
        customer_email: str,
        customer_name: str,
        amount_paid: Optional[int]
    ) -> Result[ConfirmationResult, ReservationEngineError]:
        now = utcnow()

        existing = await session.scalar(
            select(Booking).where(Booking.payment_reference == payment_reference)
        )
        if existing is not None:
            return Ok(ConfirmationResult(existing, ConfirmationResolution.DUPLICATE_REFERENCE))

        holds = (await session.execute(
            live_holds_query(session_token, now)
            .order_by(Hold.seat_id)
            .with_for_update()
        )).scalars().all()

        if not holds:
            return await self._resolve_without_holds(session, session_token, payment_reference, amount_paid)

        # Compare-and-set: only rows still ACTIVE move to CONFIRMED
        transitioned = await session.execute(
            update(Hold)
            .where(
                Hold.id.in_([hold.id for hold in holds]),
                Hold.status == HoldStatus.ACTIVE,
            )
            .values(status=HoldStatus.CONFIRMED, released_at=now)
            .execution_options(synchronize_session=False)
        )
        if transitioned.rowcount != len(holds):
            raise ConcurrencyError(f"Holds for {session_token} changed during confirmation")

        show = await session.get(Show, holds[0].show_id)
        booking = Booking(
            show_id=holds[0].show_id,
            session_token=session_token,
            customer_email=customer_email,
            customer_name=customer_name,
            payment_reference=payment_reference,
            validation_code=await self._unique_validation_code(session),
            total_amount=sum(hold.price_at_hold for hold in holds),
            amount_paid=amount_paid,
            currency=show.currency if show is not None else self.settings.currency,
            status=BookingStatus.CONFIRMED,
            seats=[
                BookingSeat(seat_id=hold.seat_id, price_paid=hold.price_at_hold)
                for hold in holds
            ],
        )
        session.add(booking)
        await session.flush()

        return Ok(ConfirmationResult(booking, ConfirmationResolution.CREATED))

    async def _resolve_without_holds(
        self,
        session: AsyncSession,
        session_token: str,
        payment_reference: str,
        amount_paid: Optional[int]
    ) -> Result[ConfirmationResult, ReservationEngineError]:
        """No live holds: either another confirmation won, or the reservation lapsed."""
        prior = await session.scalar(
            select(Booking)
            .where(Booking.session_token == session_token)
            .order_by(Booking.created_at)
            .limit(1)
        )
        if prior is not None:
            if prior.payment_reference == payment_reference:
                return Ok(ConfirmationResult(prior, ConfirmationResolution.DUPLICATE_REFERENCE))

            # Two different payments for one checkout; the second needs a refund
            log_escalation("session_paid_twice", {
                "session_token": session_token,
                "booking_id": str(prior.id),
                "booked_reference": prior.payment_reference,
                "payment_reference": payment_reference,
                "amount_paid": amount_paid,
            }, severity="ERROR")
            return Ok(ConfirmationResult(prior, ConfirmationResolution.CONFIRMED_BY_OTHER))

        log_escalation("paid_reservation_expired", {
            "session_token": session_token,
            "payment_reference": payment_reference,
            "amount_paid": amount_paid,
        })
        return Err(ReservationExpiredError(session_token, payment_reference))

    async def _unique_validation_code(self, session: AsyncSession, attempts: int = 5) -> str:
        for _ in range(attempts):
            code = generate_validation_code(self.settings.validation_code_length)
            taken = await session.scalar(
                select(Booking.id).where(Booking.validation_code == code)
            )
            if taken is None:
                return code
        raise ConcurrencyError("Could not allocate a unique validation code")

    async def _find_booking(self, *criteria) -> Optional[Booking]:
        async with self.session_factory() as session:
            return await session.scalar(select(Booking).where(*criteria))

    async def _lookup(self, operation: str, missing_key: str, *criteria) -> Result[Booking, ReservationEngineError]:
        try:
            booking = await self._find_booking(*criteria)
        except SQLAlchemyError as e:
            return Err(PersistenceFailureError(operation, str(e)))
        if booking is None:
            return Err(BookingNotFoundError(missing_key))
        return Ok(booking)

    async def lookup_booking(self, payment_reference: str) -> Result[Booking, ReservationEngineError]:
        """Find the booking recorded for a payment reference."""
        return await self._lookup(
            "lookup_booking", payment_reference, Booking.payment_reference == payment_reference
        )

    async def lookup_booking_by_session(self, session_token: str) -> Result[Booking, ReservationEngineError]:
        """Find the booking created from a checkout attempt (for the success page)."""
        try:
            async with self.session_factory() as session:
                booking = await session.scalar(
                    select(Booking)
                    .where(Booking.session_token == session_token)
                    .order_by(Booking.created_at)
                    .limit(1)
                )
        except SQLAlchemyError as e:
            return Err(PersistenceFailureError("lookup_booking_by_session", str(e)))
        if booking is None:
            return Err(BookingNotFoundError(session_token))
        return Ok(booking)

    async def lookup_booking_by_validation_code(self, code: str) -> Result[Booking, ReservationEngineError]:
        """Find the booking a scanned ticket code belongs to."""
        normalized = code.strip().upper()
        return await self._lookup(
            "lookup_booking_by_validation_code", normalized, Booking.validation_code == normalized
        )

    async def cancel_booking(
        self,
        payment_reference: str,
        refunded: bool = False
    ) -> Result[Booking, ReservationEngineError]:
        """
        Move a confirmed booking to CANCELLED or REFUNDED, releasing its seats.

        Bookings that are already cancelled or refunded are returned unchanged.
        """
        now = utcnow()
        try:
            async with self.session_factory.begin() as session:
                booking = await session.scalar(
                    select(Booking)
                    .where(Booking.payment_reference == payment_reference)
                    .with_for_update()
                )
                if booking is None:
                    return Err(BookingNotFoundError(payment_reference))
                if booking.status != BookingStatus.CONFIRMED:
                    return Ok(booking)

                booking.status = BookingStatus.REFUNDED if refunded else BookingStatus.CANCELLED
                booking.cancelled_at = now
                await session.flush()
        except SQLAlchemyError as e:
            logger.error(f"Cancelling booking {payment_reference} failed: {e}")
            return Err(PersistenceFailureError("cancel_booking", str(e)))

        log_business_event("booking_cancelled", {
            "booking_id": str(booking.id),
            "payment_reference": payment_reference,
            "status": booking.status.value,
        })
        return Ok(booking)
