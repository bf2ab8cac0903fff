"""
Celery tasks executed eagerly against a SQLite database.
"""

import asyncio
from datetime import timedelta
from uuid import uuid4

import pytest

from seat_reservation_engine.database import create_database_engine, create_session_factory, create_tables
from seat_reservation_engine.schemas.seat import SeatCreate
from seat_reservation_engine.services.confirmation_service import ConfirmationService
from seat_reservation_engine.services.inventory_service import InventoryService
from seat_reservation_engine.services.reservation_ledger import ReservationLedger
from seat_reservation_engine.tasks import worker_db
from seat_reservation_engine.tasks.celery_app import celery_app
from seat_reservation_engine.tasks.notification_tasks import send_booking_confirmation_task
from seat_reservation_engine.tasks.reaper_tasks import sweep_expired_holds_task
from seat_reservation_engine.utils.clock import utcnow


@pytest.fixture
def worker_database(tmp_path, monkeypatch):
    url = f"sqlite+aiosqlite:///{tmp_path / 'worker.db'}"

    async def prepare():
        engine = create_database_engine(url)
        await create_tables(engine)
        await engine.dispose()

    asyncio.run(prepare())
    monkeypatch.setattr(worker_db, "create_database_engine", lambda: create_database_engine(url))
    return url


def test_beat_schedule_runs_the_sweep():
    entry = celery_app.conf.beat_schedule["sweep-expired-holds"]

    assert entry["task"] == "sweep_expired_holds_task"
    assert entry["schedule"] > 0


def test_sweep_task(worker_database):
    assert sweep_expired_holds_task() == {"released_count": 0, "succeeded": True}


def test_confirmation_task_for_unknown_booking(worker_database):
    booking_id = str(uuid4())

    assert send_booking_confirmation_task(booking_id) == {"booking_id": booking_id, "status": "missing"}


def test_confirmation_task_dispatches_existing_booking(worker_database):
    async def book_one_seat():
        engine = create_database_engine(worker_database)
        try:
            factory = create_session_factory(engine)
            inventory = InventoryService(factory)
            show = await inventory.create_show("Late Show", utcnow() + timedelta(days=1), "gbp")
            seats = await inventory.provision_seats(show.id, [
                SeatCreate(section="Stalls", row="Z", number="1", base_price=2000, position_x=0)
            ])
            (await ReservationLedger(factory).create_holds([seats[0].id], "session-worker", 600)).unwrap()
            confirmed = (await ConfirmationService(factory).confirm_reservation(
                "session-worker", "pay_worker", "w@example.com", "W"
            )).unwrap()
            return str(confirmed.booking.id)
        finally:
            await engine.dispose()

    booking_id = asyncio.run(book_one_seat())

    assert send_booking_confirmation_task(booking_id) == {"booking_id": booking_id, "status": "dispatched"}
