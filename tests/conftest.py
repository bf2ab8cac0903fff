"""
Shared fixtures: a fresh file-backed SQLite database per test and a seeded show.
"""

import logging
import os

# Settings are read once at import time
os.environ.setdefault("REDIS_URL", "redis://127.0.0.1:1/0")
os.environ.setdefault("ADMIN_API_TOKEN", "test-admin-token")
os.environ.setdefault("PAYMENT_WEBHOOK_SECRET", "whsec_test_secret")
os.environ.setdefault("PAYMENT_GATEWAY", "sandbox")

from datetime import timedelta
from typing import List

import pytest
import pytest_asyncio

from seat_reservation_engine.database import close_database, get_session_factory, init_database
from seat_reservation_engine.schemas.seat import SeatCreate, SeatResponse, ShowResponse
from seat_reservation_engine.services.availability_service import AvailabilityService
from seat_reservation_engine.services.confirmation_service import ConfirmationService
from seat_reservation_engine.services.expiry_reaper import ExpiryReaper
from seat_reservation_engine.services.inventory_service import InventoryService
from seat_reservation_engine.services.reservation_ledger import ReservationLedger
from seat_reservation_engine.utils.clock import utcnow

SEAT_PRICES = [4500, 4500, 3000, 3000, 2500, 2500]


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    await init_database(f"sqlite+aiosqlite:///{tmp_path / 'engine.db'}")
    try:
        yield get_session_factory()
    finally:
        await close_database()


@pytest.fixture
def inventory(session_factory) -> InventoryService:
    return InventoryService(session_factory)


@pytest.fixture
def ledger(session_factory) -> ReservationLedger:
    return ReservationLedger(session_factory)


@pytest.fixture
def confirmation(session_factory) -> ConfirmationService:
    return ConfirmationService(session_factory)


@pytest.fixture
def availability(session_factory) -> AvailabilityService:
    return AvailabilityService(session_factory)


@pytest.fixture
def reaper(session_factory) -> ExpiryReaper:
    return ExpiryReaper(session_factory)


async def create_show_with_seats(inventory: InventoryService, prices: List[int], row: str = "A"):
    show = await inventory.create_show("Evening Performance", utcnow() + timedelta(days=7), "gbp")
    seats = await inventory.provision_seats(show.id, [
        SeatCreate(section="Stalls", row=row, number=str(index + 1), base_price=price, position_x=index)
        for index, price in enumerate(prices)
    ])
    return show, seats


@pytest_asyncio.fixture
async def show_with_seats(inventory):
    return await create_show_with_seats(inventory, SEAT_PRICES)


@pytest.fixture
def show(show_with_seats) -> ShowResponse:
    return show_with_seats[0]


@pytest.fixture
def seats(show_with_seats) -> List[SeatResponse]:
    return show_with_seats[1]


class RecordingHandler(logging.Handler):
    def __init__(self):
        super().__init__(level=logging.DEBUG)
        self.records: List[logging.LogRecord] = []

    def emit(self, record):
        self.records.append(record)


@pytest.fixture
def escalations():
    """Records logged on the escalation logger (the app loggers do not propagate to caplog)."""
    handler = RecordingHandler()
    logger = logging.getLogger("seat_reservation_engine.escalation")
    logger.addHandler(handler)
    try:
        yield handler.records
    finally:
        logger.removeHandler(handler)
