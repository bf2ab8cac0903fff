"""
Celery tasks for booking notifications.

Dispatch is best-effort: a failure here never touches the booking.
"""

import logging
from uuid import UUID

from .celery_app import celery_app
from .worker_db import run_in_new_loop, with_session_factory
from ..models import Booking

logger = logging.getLogger(__name__)


def _send_confirmation(booking_id: str):
    async def _load_and_send(session_factory):
        async with session_factory() as session:
            booking = await session.get(Booking, UUID(booking_id))
            if booking is None:
                logger.error(f"Booking {booking_id} not found for confirmation dispatch")
                return {"booking_id": booking_id, "status": "missing"}

            # Delivery itself belongs to the email provider integration
            logger.info(
                f"Dispatching booking confirmation {booking.validation_code} "
                f"for {len(booking.seats)} seat(s) to {booking.customer_email}"
            )
            return {"booking_id": booking_id, "status": "dispatched"}

    return with_session_factory(_load_and_send)


@celery_app.task(bind=True, name="send_booking_confirmation_task", max_retries=3, default_retry_delay=30)
def send_booking_confirmation_task(self, booking_id: str):
    """
    Task to send booking confirmation notification.

    Args:
        booking_id: ID of the confirmed booking
    """
    logger.info(f"Sending booking confirmation for {booking_id}")
    try:
        return run_in_new_loop(_send_confirmation(booking_id))
    except (OSError, ConnectionError) as e:
        logger.warning(f"Booking confirmation for {booking_id} failed, retrying: {e}")
        raise self.retry(exc=e)
