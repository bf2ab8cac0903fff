"""
FastAPI dependencies wiring services to the shared session factory.
"""

import hmac
from typing import Callable, Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config import get_settings
from ..database import get_session_factory
from ..services.availability_service import AvailabilityService
from ..services.checkout_service import CheckoutService, enqueue_booking_confirmation
from ..services.confirmation_service import ConfirmationService
from ..services.expiry_reaper import ExpiryReaper
from ..services.inventory_service import InventoryService
from ..services.payment_gateway import PaymentGateway, get_payment_gateway
from ..services.reservation_ledger import ReservationLedger
from .exceptions import AuthorizationError

# Bearer scheme for operational endpoints; missing headers are reported by require_admin_token
security = HTTPBearer(auto_error=False)

_gateway: Optional[PaymentGateway] = None


def session_factory() -> async_sessionmaker[AsyncSession]:
    return get_session_factory()


def get_inventory_service(factory=Depends(session_factory)) -> InventoryService:
    return InventoryService(factory)


def get_ledger(factory=Depends(session_factory)) -> ReservationLedger:
    return ReservationLedger(factory)


def get_availability_service(factory=Depends(session_factory)) -> AvailabilityService:
    return AvailabilityService(factory)


def get_confirmation_service(factory=Depends(session_factory)) -> ConfirmationService:
    return ConfirmationService(factory)


def get_expiry_reaper(factory=Depends(session_factory)) -> ExpiryReaper:
    return ExpiryReaper(factory)


def get_gateway() -> PaymentGateway:
    """Process-wide payment gateway, built on first use."""
    global _gateway
    if _gateway is None:
        _gateway = get_payment_gateway()
    return _gateway


async def close_gateway() -> None:
    global _gateway
    if _gateway is not None:
        await _gateway.close()
        _gateway = None


def get_confirmation_dispatcher() -> Callable[[str], None]:
    return enqueue_booking_confirmation


def get_checkout_service(
    ledger: ReservationLedger = Depends(get_ledger),
    confirmation: ConfirmationService = Depends(get_confirmation_service),
    gateway: PaymentGateway = Depends(get_gateway),
    dispatcher: Callable[[str], None] = Depends(get_confirmation_dispatcher),
) -> CheckoutService:
    return CheckoutService(ledger, confirmation, gateway, dispatch_confirmation=dispatcher)


async def require_admin_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> None:
    """
    Guard operational endpoints with the configured ``admin_api_token``.

    Raises:
        AuthorizationError: If no token is configured or the bearer token does not match
    """
    expected = get_settings().admin_api_token
    if not expected:
        raise AuthorizationError("Operational endpoints are disabled")
    if credentials is None or not hmac.compare_digest(credentials.credentials, expected):
        raise AuthorizationError("Invalid or missing bearer token")
