"""Seat reservation engine services."""

from .inventory_service import InventoryService
from .reservation_ledger import ReservationLedger, HoldSet, HeldSeat
from .availability_service import AvailabilityService, SeatAvailability
from .confirmation_service import ConfirmationService, ConfirmationResult, ConfirmationResolution
from .expiry_reaper import ExpiryReaper, SweepResult
from .payment_gateway import PaymentGateway, PaymentSession, SandboxPaymentGateway, HostedPaymentGateway
from .checkout_service import CheckoutService, CheckoutSession

__all__ = [
    "InventoryService",
    "ReservationLedger",
    "HoldSet",
    "HeldSeat",
    "AvailabilityService",
    "SeatAvailability",
    "ConfirmationService",
    "ConfirmationResult",
    "ConfirmationResolution",
    "ExpiryReaper",
    "SweepResult",
    "PaymentGateway",
    "PaymentSession",
    "SandboxPaymentGateway",
    "HostedPaymentGateway",
    "CheckoutService",
    "CheckoutSession",
]
