"""API endpoints for the seat reservation engine."""

from fastapi import APIRouter
from .shows import router as shows_router
from .holds import router as holds_router
from .checkout import router as checkout_router
from .bookings import router as bookings_router
from .admin import router as admin_router

# Create main API router
api_router = APIRouter(prefix="/api/v1")

api_router.include_router(shows_router)
api_router.include_router(holds_router)
api_router.include_router(checkout_router)
api_router.include_router(bookings_router)
api_router.include_router(admin_router)

__all__ = ["api_router"]
