"""
Error taxonomy for the seat reservation engine.

Ledger and confirmation operations hand these back inside a ``Result`` rather
than raising them; the HTTP layer raises them so the error middleware can
render a structured response.
"""

from typing import Any, Dict, Iterable, Optional, List
from enum import Enum


class ErrorCode(str, Enum):
    """Standard error codes for the engine."""

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"

    # Selection errors
    EMPTY_SELECTION = "EMPTY_SELECTION"
    MIXED_SHOW_SELECTION = "MIXED_SHOW_SELECTION"
    TOO_MANY_SEATS = "TOO_MANY_SEATS"

    # Contention and expiry
    SEAT_UNAVAILABLE = "SEAT_UNAVAILABLE"
    HOLD_NOT_FOUND = "HOLD_NOT_FOUND"
    RESERVATION_EXPIRED = "RESERVATION_EXPIRED"

    # Infrastructure
    CONCURRENCY_CONFLICT = "CONCURRENCY_CONFLICT"
    PERSISTENCE_FAILURE = "PERSISTENCE_FAILURE"

    # Payments
    INVALID_WEBHOOK_SIGNATURE = "INVALID_WEBHOOK_SIGNATURE"
    PAYMENT_SERVICE_ERROR = "PAYMENT_SERVICE_ERROR"


class ReservationEngineError(Exception):
    """Base exception class for the reservation engine."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
        retry_after: Optional[int] = None
    ):
        """Initialize the exception with comprehensive error information."""
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.suggestions = suggestions or []
        self.retry_after = retry_after
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        result = {
            "error_code": self.error_code.value,
            "message": self.message,
        }

        if self.details:
            result["details"] = self.details

        if self.suggestions:
            result["suggestions"] = self.suggestions

        if self.retry_after:
            result["retry_after"] = self.retry_after

        return result


class ValidationError(ReservationEngineError):
    """Exception raised for validation errors."""

    def __init__(self, message: str, field_errors: Optional[Dict[str, List[str]]] = None, **kwargs):
        super().__init__(
            message,
            error_code=ErrorCode.VALIDATION_ERROR,
            details={"field_errors": field_errors} if field_errors else kwargs.pop("details", None),
            **kwargs
        )
        self.field_errors = field_errors or {}


class NotFoundError(ReservationEngineError):
    """Base exception for resource not found errors."""

    def __init__(self, message: str, resource_type: Optional[str] = None, resource_id: Optional[str] = None, **kwargs):
        super().__init__(
            message,
            error_code=ErrorCode.NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": resource_id} if resource_type else None,
            **kwargs
        )


class ShowNotFoundError(NotFoundError):
    """Exception raised when a show is not found."""

    def __init__(self, show_id: str, **kwargs):
        super().__init__(
            f"Show {show_id} not found",
            resource_type="show",
            resource_id=show_id,
            suggestions=["Check the show ID", "Browse available shows"],
            **kwargs
        )


class SeatNotFoundError(NotFoundError):
    """Exception raised when one or more seats are not found."""

    def __init__(self, seat_ids: Iterable[str], **kwargs):
        seat_ids = sorted(str(seat_id) for seat_id in seat_ids)
        super().__init__(
            f"Seat(s) not found: {', '.join(seat_ids)}",
            resource_type="seat",
            resource_id=",".join(seat_ids),
            suggestions=["Refresh the seat map"],
            **kwargs
        )
        self.seat_ids = seat_ids


class BookingNotFoundError(NotFoundError):
    """Exception raised when a booking is not found."""

    def __init__(self, reference: str, **kwargs):
        super().__init__(
            f"Booking {reference} not found",
            resource_type="booking",
            resource_id=reference,
            suggestions=["Check the payment reference", "Contact support if you were charged"],
            **kwargs
        )


class AuthorizationError(ReservationEngineError):
    """Exception raised when an operational endpoint is called without a valid token."""

    def __init__(self, message: str = "Access denied", **kwargs):
        super().__init__(
            message,
            error_code=ErrorCode.UNAUTHORIZED,
            **kwargs
        )


class SelectionError(ReservationEngineError):
    """Base exception for malformed seat selections."""
    pass


class EmptySelectionError(SelectionError):
    """Exception raised when a hold is requested for no seats."""

    def __init__(self, **kwargs):
        super().__init__(
            "At least one seat must be selected",
            error_code=ErrorCode.EMPTY_SELECTION,
            suggestions=["Select one or more seats"],
            **kwargs
        )


class MixedShowSelectionError(SelectionError):
    """Exception raised when the selected seats span more than one show."""

    def __init__(self, show_ids: Iterable[str], **kwargs):
        show_ids = sorted(str(show_id) for show_id in show_ids)
        super().__init__(
            "All selected seats must belong to the same show",
            error_code=ErrorCode.MIXED_SHOW_SELECTION,
            details={"show_ids": show_ids},
            **kwargs
        )


class TooManySeatsError(SelectionError):
    """Exception raised when a selection exceeds the per-hold seat cap."""

    def __init__(self, requested: int, maximum: int, **kwargs):
        super().__init__(
            f"Cannot hold {requested} seats, maximum is {maximum}",
            error_code=ErrorCode.TOO_MANY_SEATS,
            details={"requested": requested, "maximum": maximum},
            suggestions=[f"Select at most {maximum} seats"],
            **kwargs
        )


class SeatUnavailableError(ReservationEngineError):
    """Exception raised when one or more seats are already held or sold."""

    def __init__(self, conflicting_seat_ids: Iterable[str], **kwargs):
        conflicting = sorted(str(seat_id) for seat_id in conflicting_seat_ids)
        super().__init__(
            f"{len(conflicting)} selected seat(s) are no longer available",
            error_code=ErrorCode.SEAT_UNAVAILABLE,
            details={"conflicting_seat_ids": conflicting},
            suggestions=["Refresh seat availability", "Choose different seats"],
            **kwargs
        )
        self.conflicting_seat_ids = conflicting


class HoldNotFoundError(ReservationEngineError):
    """Exception raised when a session token has no live holds."""

    def __init__(self, session_token: str, **kwargs):
        super().__init__(
            "No active seat holds for this checkout",
            error_code=ErrorCode.HOLD_NOT_FOUND,
            details={"session_token": session_token},
            suggestions=["Select your seats again"],
            **kwargs
        )


class ReservationExpiredError(ReservationEngineError):
    """Exception raised when a confirmation arrives after every hold lapsed."""

    def __init__(self, session_token: str, payment_reference: Optional[str] = None, **kwargs):
        super().__init__(
            "The seat reservation expired before it could be confirmed",
            error_code=ErrorCode.RESERVATION_EXPIRED,
            details={"session_token": session_token, "payment_reference": payment_reference},
            suggestions=["Contact support quoting your payment reference"],
            **kwargs
        )


class ConcurrencyError(ReservationEngineError):
    """Exception raised for transient storage contention (deadlock, serialization failure)."""

    def __init__(self, message: str, retry_after: int = 1, **kwargs):
        super().__init__(
            message,
            error_code=ErrorCode.CONCURRENCY_CONFLICT,
            retry_after=retry_after,
            suggestions=["Please try again"],
            **kwargs
        )


class PersistenceFailureError(ReservationEngineError):
    """Exception raised when storage fails; safe to retry with the same identifiers."""

    def __init__(self, operation: str, reason: str, **kwargs):
        super().__init__(
            f"Storage failure during {operation}",
            error_code=ErrorCode.PERSISTENCE_FAILURE,
            details={"operation": operation, "reason": reason},
            retry_after=kwargs.pop("retry_after", 5),
            suggestions=["Retry the request"],
            **kwargs
        )


class InvalidWebhookSignatureError(ReservationEngineError):
    """Exception raised when a payment notification fails signature verification."""

    def __init__(self, reason: str, **kwargs):
        super().__init__(
            f"Invalid webhook signature: {reason}",
            error_code=ErrorCode.INVALID_WEBHOOK_SIGNATURE,
            **kwargs
        )


class PaymentServiceError(ReservationEngineError):
    """Exception raised for payment gateway failures."""

    def __init__(self, message: str, status_code: Optional[int] = None, **kwargs):
        super().__init__(
            f"payment service error: {message}",
            error_code=ErrorCode.PAYMENT_SERVICE_ERROR,
            details={"status_code": status_code},
            suggestions=["Try again later"],
            **kwargs
        )
