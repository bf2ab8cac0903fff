"""
Request logging middleware with request-id propagation.
"""

import logging
import time
import contextvars
from typing import Optional
from uuid import uuid4

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

# Read by RequestIDFilter so every log line of a request carries its id
request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="no-request-id")

QUIET_PATHS = {"/", "/health", "/docs", "/redoc", "/openapi.json"}


class LoggingMiddleware(BaseHTTPMiddleware):
    """Logs each request and response and stamps X-Request-ID / X-Process-Time."""

    def __init__(self, app, log_requests: bool = True, slow_request_threshold: float = 2.0):
        super().__init__(app)
        self.log_requests = log_requests
        self.slow_request_threshold = slow_request_threshold

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid4())
        request.state.request_id = request_id
        token = request_id_var.set(request_id)
        start_time = time.perf_counter()

        try:
            if self.log_requests:
                self._log_request(request)

            try:
                response = await call_next(request)
            except Exception as exc:
                logger.error(
                    f"Request failed: {request.method} {request.url.path} "
                    f"({type(exc).__name__}) after {time.perf_counter() - start_time:.4f}s"
                )
                raise

            process_time = time.perf_counter() - start_time
            response.headers["X-Request-ID"] = request_id
            response.headers["X-Process-Time"] = f"{process_time:.4f}"

            if self.log_requests:
                self._log_response(request, response.status_code, process_time)
            return response
        finally:
            request_id_var.reset(token)

    def _log_request(self, request: Request) -> None:
        extra = {
            "method": request.method,
            "path": request.url.path,
            "client_ip": self._get_client_ip(request),
        }
        if request.url.path in QUIET_PATHS:
            logger.debug(f"Request: {request.method} {request.url.path}", extra=extra)
        else:
            logger.info(f"Request: {request.method} {request.url.path}", extra=extra)

    def _log_response(self, request: Request, status_code: int, process_time: float) -> None:
        extra = {"status_code": status_code, "process_time": process_time}
        if status_code < 400:
            logger.info(f"Response: {status_code} ({process_time:.4f}s)", extra=extra)
        elif status_code < 500:
            logger.warning(f"Client error: {status_code} ({process_time:.4f}s)", extra=extra)
        else:
            logger.error(f"Server error: {status_code} ({process_time:.4f}s)", extra=extra)

        if process_time > self.slow_request_threshold:
            logger.warning(
                f"Slow request detected: {request.method} {request.url.path} took {process_time:.4f}s",
                extra={"slow_request": True, "threshold": self.slow_request_threshold}
            )

    @staticmethod
    def _get_client_ip(request: Request) -> Optional[str]:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
        return request.client.host if request.client else None
