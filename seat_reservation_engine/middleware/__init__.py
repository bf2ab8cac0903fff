"""Middleware components for the seat reservation engine."""

from .error_handler import ErrorHandlerMiddleware
from .logging import LoggingMiddleware

__all__ = [
    "ErrorHandlerMiddleware",
    "LoggingMiddleware",
]
