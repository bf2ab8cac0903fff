"""
Error handling middleware: renders engine errors as structured JSON responses.
"""

import logging
import traceback
from datetime import datetime, timezone
from uuid import uuid4

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from sqlalchemy.exc import IntegrityError, OperationalError, TimeoutError as SQLTimeoutError
from pydantic import ValidationError as PydanticValidationError

from ..utils.exceptions import (
    ReservationEngineError,
    ErrorCode,
    ValidationError,
    NotFoundError,
    SelectionError,
    SeatUnavailableError,
    HoldNotFoundError,
    ReservationExpiredError,
    PersistenceFailureError,
)

logger = logging.getLogger(__name__)

STATUS_MAP = {
    ErrorCode.VALIDATION_ERROR: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.EMPTY_SELECTION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.MIXED_SHOW_SELECTION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.TOO_MANY_SEATS: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.SEAT_UNAVAILABLE: status.HTTP_409_CONFLICT,
    ErrorCode.HOLD_NOT_FOUND: status.HTTP_410_GONE,
    ErrorCode.RESERVATION_EXPIRED: status.HTTP_410_GONE,
    ErrorCode.CONCURRENCY_CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCode.PERSISTENCE_FAILURE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.INVALID_WEBHOOK_SIGNATURE: status.HTTP_400_BAD_REQUEST,
    ErrorCode.PAYMENT_SERVICE_ERROR: status.HTTP_502_BAD_GATEWAY,
}

# Expected outcomes of normal traffic, logged below error level
CLIENT_ERRORS = (
    ValidationError,
    NotFoundError,
    SelectionError,
    SeatUnavailableError,
    HoldNotFoundError,
)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Middleware for error handling and response formatting."""

    def __init__(self, app, debug: bool = False):
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next):
        """Process request and handle any exceptions."""
        try:
            return await call_next(request)
        except Exception as exc:
            return self.handle_exception(request, exc, str(uuid4()))

    def handle_exception(self, request: Request, exc: Exception, error_id: str) -> JSONResponse:
        """Log ``exc`` and turn it into a JSON response."""
        self._log_error(request, exc, error_id)

        if isinstance(exc, ReservationEngineError):
            return self._render(exc, error_id, self.status_code_for(exc))
        if isinstance(exc, PydanticValidationError):
            return self._handle_validation_error(exc, error_id)
        if isinstance(exc, IntegrityError):
            return self._render(
                ValidationError("Data integrity constraint violation", details={"constraint_type": "integrity"}),
                error_id,
                status.HTTP_409_CONFLICT
            )
        if isinstance(exc, (OperationalError, SQLTimeoutError)):
            return self._render(
                PersistenceFailureError("request", type(exc).__name__, retry_after=30),
                error_id,
                status.HTTP_503_SERVICE_UNAVAILABLE
            )
        return self._handle_unexpected_error(exc, error_id)

    @staticmethod
    def status_code_for(exc: ReservationEngineError) -> int:
        """Map error codes to HTTP status codes."""
        return STATUS_MAP.get(exc.error_code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    def _render(self, exc: ReservationEngineError, error_id: str, status_code: int) -> JSONResponse:
        headers = {}
        if exc.retry_after:
            headers["Retry-After"] = str(exc.retry_after)

        return JSONResponse(
            status_code=status_code,
            content={
                "error": exc.to_dict(),
                "error_id": error_id,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
            headers=headers
        )

    def _handle_validation_error(self, exc: PydanticValidationError, error_id: str) -> JSONResponse:
        """Handle Pydantic validation errors raised outside request parsing."""
        field_errors = {}
        for error in exc.errors():
            field_path = ".".join(str(loc) for loc in error["loc"])
            field_errors.setdefault(field_path, []).append(error["msg"])

        return self._render(
            ValidationError("Request validation failed", field_errors=field_errors),
            error_id,
            status.HTTP_422_UNPROCESSABLE_ENTITY
        )

    def _handle_unexpected_error(self, exc: Exception, error_id: str) -> JSONResponse:
        response = self._render(
            ReservationEngineError(
                "An unexpected error occurred",
                error_code=ErrorCode.INTERNAL_ERROR,
                details={"error_type": type(exc).__name__} if self.debug else None
            ),
            error_id,
            status.HTTP_500_INTERNAL_SERVER_ERROR
        )
        return response

    def _log_error(self, request: Request, exc: Exception, error_id: str) -> None:
        """Log error with request context at a level matching its severity."""
        context = {
            "error_id": error_id,
            "method": request.method,
            "path": request.url.path,
            "client_ip": request.client.host if request.client else None,
        }

        if isinstance(exc, ReservationEngineError):
            context.update(error_code=exc.error_code.value, error_details=exc.details)
            if isinstance(exc, CLIENT_ERRORS):
                logger.info(f"Client error [{error_id}]: {exc.message}", extra=context)
            elif isinstance(exc, ReservationExpiredError):
                # Already escalated by the confirmation service
                logger.warning(f"Expired reservation [{error_id}]: {exc.message}", extra=context)
            else:
                logger.error(f"Engine error [{error_id}]: {exc.message}", extra=context)
        else:
            logger.error(
                f"Unexpected error [{error_id}]: {exc}",
                extra={**context, "error_type": type(exc).__name__, "traceback": traceback.format_exc()}
            )
