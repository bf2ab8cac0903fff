"""
Tests for seat availability derivation.
"""

from datetime import timedelta
from uuid import uuid4

import pytest

from seat_reservation_engine.services.availability_service import AvailabilityService, SeatAvailability
from seat_reservation_engine.utils.clock import utcnow
from seat_reservation_engine.utils.exceptions import ShowNotFoundError


async def test_fresh_show_is_all_available(availability, show, seats):
    statuses = await availability.get_availability(show.id)

    assert set(statuses) == {seat.id for seat in seats}
    assert set(statuses.values()) == {SeatAvailability.AVAILABLE}


async def test_held_and_sold_seats(availability, ledger, confirmation, show, seats):
    (await ledger.create_holds([seats[0].id], "session-held", 600)).unwrap()
    (await ledger.create_holds([seats[1].id], "session-sold", 600)).unwrap()
    (await confirmation.confirm_reservation("session-sold", "pay_avail", "b@example.com", "B")).unwrap()

    statuses = await availability.get_availability(show.id)

    assert statuses[seats[0].id] == SeatAvailability.HELD
    assert statuses[seats[1].id] == SeatAvailability.SOLD
    assert statuses[seats[2].id] == SeatAvailability.AVAILABLE


async def test_lapsed_hold_is_available_before_any_sweep(availability, ledger, show, seats):
    (await ledger.create_holds([seats[0].id], "session-lapsing", 60)).unwrap()

    later = utcnow() + timedelta(seconds=61)
    statuses = await availability.get_availability(show.id, now=later)

    assert statuses[seats[0].id] == SeatAvailability.AVAILABLE


async def test_cancelled_booking_frees_its_seats(availability, ledger, confirmation, show, seats):
    (await ledger.create_holds([seats[0].id], "session-refund", 600)).unwrap()
    (await confirmation.confirm_reservation("session-refund", "pay_refund", "c@example.com", "C")).unwrap()
    (await confirmation.cancel_booking("pay_refund", refunded=True)).unwrap()

    statuses = await availability.get_availability(show.id)

    assert statuses[seats[0].id] == SeatAvailability.AVAILABLE


async def test_summary_counts(availability, ledger, show, seats):
    (await ledger.create_holds([seats[0].id, seats[1].id], "session-summary", 600)).unwrap()

    summary = await availability.summarize(show.id)

    assert summary == {"available": len(seats) - 2, "held": 2, "sold": 0, "total": len(seats)}


def test_count_by_status_includes_empty_statuses():
    summary = AvailabilityService.count_by_status({uuid4(): SeatAvailability.SOLD})

    assert summary == {"available": 0, "held": 0, "sold": 1, "total": 1}


async def test_unknown_show(availability):
    with pytest.raises(ShowNotFoundError):
        await availability.get_availability(uuid4())
