"""
Logging configuration for the seat reservation engine.
"""

import json
import logging
import logging.config
import re
import sys
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from pathlib import Path

from ..config import get_settings

APP_LOGGER = "seat_reservation_engine"


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    enable_json_logging: bool = False
) -> None:
    """
    Set up logging for the application, its workers and third-party libraries.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path
        enable_json_logging: Enable JSON formatted logs
    """
    settings = get_settings()

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    handler_names = ["console"]

    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "detailed": {
                "format": (
                    "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d "
                    "[%(request_id)s] %(message)s"
                ),
                "datefmt": "%Y-%m-%d %H:%M:%S"
            },
            "json": {
                "()": f"{APP_LOGGER}.utils.logging_config.JSONFormatter",
            }
        },
        "filters": {
            "request_id": {
                "()": f"{APP_LOGGER}.utils.logging_config.RequestIDFilter"
            },
            "sensitive_data": {
                "()": f"{APP_LOGGER}.utils.logging_config.SensitiveDataFilter"
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": "json" if enable_json_logging else "detailed",
                "stream": sys.stdout,
                "filters": ["request_id", "sensitive_data"]
            }
        },
        "loggers": {
            APP_LOGGER: {"level": log_level, "propagate": False},
            "uvicorn": {"level": "INFO", "propagate": False},
            "uvicorn.access": {"level": "INFO", "propagate": False},
            "sqlalchemy.engine": {"level": "WARNING", "propagate": False},
            "sqlalchemy.pool": {"level": "WARNING", "propagate": False},
            "redis": {"level": "WARNING", "propagate": False},
            "celery": {"level": "INFO", "propagate": False},
            "httpx": {"level": "WARNING", "propagate": False},
        },
        "root": {
            "level": log_level,
        }
    }

    if log_file:
        config["handlers"]["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": log_level,
            "formatter": "json" if enable_json_logging else "detailed",
            "filename": log_file,
            "maxBytes": 10 * 1024 * 1024,
            "backupCount": 5,
            "filters": ["request_id", "sensitive_data"]
        }
        handler_names.append("file")

    for logger_config in config["loggers"].values():
        logger_config["handlers"] = list(handler_names)
    config["root"]["handlers"] = list(handler_names)

    # Escalations go to their own file in production so on-call can tail it
    if settings.environment == "production":
        escalation_file = log_file.replace(".log", "_escalations.log") if log_file else "logs/escalations.log"
        Path(escalation_file).parent.mkdir(parents=True, exist_ok=True)
        config["handlers"]["escalation_file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": "ERROR",
            "formatter": "json",
            "filename": escalation_file,
            "maxBytes": 10 * 1024 * 1024,
            "backupCount": 10,
            "filters": ["request_id", "sensitive_data"]
        }
        config["loggers"][APP_LOGGER]["handlers"].append("escalation_file")

    logging.config.dictConfig(config)

    def handle_exception(exc_type, exc_value, exc_traceback):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_traceback)
            return

        logging.getLogger(f"{APP_LOGGER}.exceptions").error(
            "Uncaught exception",
            exc_info=(exc_type, exc_value, exc_traceback),
            extra={"exception_type": exc_type.__name__}
        )

    sys.excepthook = handle_exception


class RequestIDFilter(logging.Filter):
    """Filter to add request ID to log records."""

    def filter(self, record):
        request_id = getattr(record, "request_id", None)

        if not request_id:
            from ..middleware.logging import request_id_var
            request_id = request_id_var.get() or "no-request-id"

        record.request_id = request_id
        return True


class SensitiveDataFilter(logging.Filter):
    """Filter to mask secrets in log records."""

    SENSITIVE_KEYS = {
        "secret", "authorization", "api_key", "signature", "cookie", "card"
    }
    LONG_SECRET = re.compile(r"\b(?:whsec|sk|pk)[-_][A-Za-z0-9]{8,}\b")
    EMAIL = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")

    def filter(self, record):
        if isinstance(record.msg, str):
            record.msg = self._sanitize_string(record.msg)

        for key, value in list(record.__dict__.items()):
            if isinstance(value, dict):
                setattr(record, key, self._sanitize_data(value))

        return True

    def _sanitize_string(self, text: str) -> str:
        text = self.LONG_SECRET.sub("***MASKED***", text)
        return self.EMAIL.sub("***EMAIL***", text)

    def _sanitize_data(self, data):
        if isinstance(data, dict):
            return {
                key: "***MASKED***" if any(sensitive in str(key).lower() for sensitive in self.SENSITIVE_KEYS)
                else self._sanitize_data(value)
                for key, value in data.items()
            }
        elif isinstance(data, str):
            return self._sanitize_string(data)
        elif isinstance(data, (list, tuple)):
            return type(data)(self._sanitize_data(item) for item in data)
        return data


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    RESERVED = {
        "name", "msg", "args", "levelname", "levelno", "pathname",
        "filename", "module", "lineno", "funcName", "created",
        "msecs", "relativeCreated", "thread", "threadName", "taskName",
        "processName", "process", "exc_info", "exc_text", "stack_info",
        "request_id", "message", "asctime"
    }

    def format(self, record):
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if hasattr(record, "request_id"):
            log_entry["request_id"] = record.request_id

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        extra_fields = {
            key: value for key, value in record.__dict__.items()
            if key not in self.RESERVED
        }
        if extra_fields:
            log_entry["extra"] = extra_fields

        return json.dumps(log_entry, default=str, ensure_ascii=False)


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the specified name."""
    return logging.getLogger(name)


def log_performance(operation_name: str, duration: float, **kwargs):
    """Log performance metrics."""
    logger = get_logger(f"{APP_LOGGER}.performance")
    logger.info(
        f"Performance: {operation_name} completed in {duration:.4f}s",
        extra={
            "operation": operation_name,
            "duration": duration,
            "performance_metric": True,
            **kwargs
        }
    )


def log_business_event(event_type: str, details: Dict[str, Any]):
    """Log holds placed, bookings confirmed and other business events."""
    logger = get_logger(f"{APP_LOGGER}.business")
    logger.info(
        f"Business event: {event_type}",
        extra={
            "event_type": event_type,
            "business_event": True,
            "event_details": details,
        }
    )


def log_escalation(event_type: str, details: Dict[str, Any], severity: str = "CRITICAL"):
    """
    Log a condition that needs a human, such as a captured payment whose
    seats could not be booked.
    """
    logger = get_logger(f"{APP_LOGGER}.escalation")

    log_method = getattr(logger, severity.lower(), logger.critical)
    log_method(
        f"Escalation: {event_type} {json.dumps(details, default=str, sort_keys=True)}",
        extra={
            "event_type": event_type,
            "escalation": True,
            "severity": severity,
            "event_details": details,
        }
    )
