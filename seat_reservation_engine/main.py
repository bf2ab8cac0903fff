"""FastAPI application setup and configuration."""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from seat_reservation_engine.config import settings
from seat_reservation_engine.api import api_router
from seat_reservation_engine.database import init_database, close_database, get_session_factory
from seat_reservation_engine.middleware import ErrorHandlerMiddleware, LoggingMiddleware
from seat_reservation_engine.services.expiry_reaper import ExpiryReaper
from seat_reservation_engine.utils.dependencies import close_gateway
from seat_reservation_engine.utils.logging_config import setup_logging

# Set up logging
setup_logging(
    log_level="DEBUG" if settings.debug else settings.log_level,
    log_file="logs/seat_reservation_engine.log" if settings.environment == "production" else None,
    enable_json_logging=settings.enable_json_logging or settings.environment == "production",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    # Startup
    logger.info("Starting seat reservation engine")
    await init_database()
    logger.info("Database initialized successfully")

    stop_reaper = asyncio.Event()
    reaper_task = None
    if settings.enable_in_process_reaper:
        reaper = ExpiryReaper(get_session_factory())
        reaper_task = asyncio.create_task(reaper.run_forever(stop=stop_reaper))
        logger.info(f"In-process expiry reaper running every {settings.reaper_interval_seconds}s")

    yield

    # Shutdown
    logger.info("Shutting down seat reservation engine")
    if reaper_task is not None:
        stop_reaper.set()
        await reaper_task
    await close_gateway()
    await close_database()
    logger.info("Database connections closed")


app = FastAPI(
    title="Seat Reservation Engine API",
    description="""
    ## Seat Reservation Engine

    Holds, confirms and releases reserved seats for ticketed shows under
    concurrent demand.

    ### Flow

    1. Render the seat map from `GET /api/v1/shows/{show_id}/availability`
    2. Hold seats with `POST /api/v1/holds`; every seat is held or none is
    3. Start payment with `POST /api/v1/checkout`
    4. The payment provider calls `POST /api/v1/webhooks/payments`, which
       turns the holds into a booking
    5. Show the result from `GET /api/v1/bookings/session/{session_token}`

    Holds lapse after their TTL and are released by the expiry reaper.

    ### Error Handling

    ```json
    {
      "error": {
        "error_code": "SEAT_UNAVAILABLE",
        "message": "2 selected seat(s) are no longer available",
        "details": {"conflicting_seat_ids": ["..."]},
        "suggestions": ["Refresh seat availability"]
      },
      "error_id": "...",
      "timestamp": "..."
    }
    ```
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {"name": "seats", "description": "Seat inventory and availability"},
        {"name": "holds", "description": "Temporary seat holds for a checkout attempt"},
        {"name": "checkout", "description": "Payment sessions and payment notifications"},
        {"name": "bookings", "description": "Confirmed bookings"},
        {"name": "admin", "description": "Operational endpoints (admin bearer token)"},
        {"name": "health", "description": "System health and monitoring endpoints"},
    ],
    lifespan=lifespan,
)

# Middleware added last runs first: CORS, then logging, then error rendering
app.add_middleware(
    ErrorHandlerMiddleware,
    debug=settings.debug
)

app.add_middleware(
    LoggingMiddleware,
    log_requests=settings.enable_request_logging
)

if settings.debug:
    # Cannot use credentials with wildcard origins
    cors_origins = ["*"]
    cors_allow_credentials = False
else:
    cors_origins = settings.cors_origins
    cors_allow_credentials = settings.cors_allow_credentials

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
    expose_headers=settings.cors_expose_headers
)

# Include API routes
app.include_router(api_router)


@app.get("/", tags=["health"])
async def root():
    """Basic information about the API."""
    return {
        "message": "Seat Reservation Engine API",
        "version": "1.0.0",
        "docs_url": "/docs",
        "redoc_url": "/redoc",
        "status": "operational"
    }


@app.get("/health", tags=["health"])
async def health_check():
    """
    Basic health check endpoint.

    Use this endpoint for simple uptime monitoring.
    """
    return {"status": "healthy", "service": "seat-reservation-engine"}


@app.get("/health/detailed", tags=["health"])
async def detailed_health_check():
    """
    Detailed health check with service dependencies.

    Returns database connectivity (with the number of lapsed holds still
    awaiting the reaper) and Redis cache status.
    """
    from seat_reservation_engine.utils.health_check import get_health_status
    return await get_health_status()
