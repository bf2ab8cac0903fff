"""
Tests for the seat inventory store.
"""

from uuid import uuid4

import pytest

from seat_reservation_engine.schemas.seat import SeatCreate
from seat_reservation_engine.utils.clock import utcnow
from seat_reservation_engine.utils.exceptions import SeatNotFoundError, ShowNotFoundError, ValidationError


class TestProvisioning:

    async def test_seats_are_listed_by_label(self, inventory, show, seats):
        listed = await inventory.get_seats(show.id)

        assert [seat.label for seat in listed] == sorted(seat.label for seat in seats)
        assert {seat.base_price for seat in listed} == {4500, 3000, 2500}

    async def test_label_defaults_to_location(self, seats):
        assert seats[0].label == "Stalls-A-1"

    async def test_provisioning_twice_is_rejected(self, inventory, show):
        with pytest.raises(ValidationError):
            await inventory.provision_seats(show.id, [
                SeatCreate(section="Circle", row="B", number="1", base_price=1000)
            ])

    async def test_duplicate_labels_are_rejected(self, inventory):
        show = await inventory.create_show("Matinee", utcnow())

        with pytest.raises(ValidationError) as exc_info:
            await inventory.provision_seats(show.id, [
                SeatCreate(label="A1", section="Stalls", row="A", number="1", base_price=1000),
                SeatCreate(label="A1", section="Stalls", row="A", number="2", base_price=1000),
            ])
        assert "duplicate label A1" in exc_info.value.field_errors["seats"]

    async def test_unknown_show(self, inventory):
        with pytest.raises(ShowNotFoundError):
            await inventory.provision_seats(uuid4(), [
                SeatCreate(section="Stalls", row="A", number="1", base_price=1000)
            ])
        with pytest.raises(ShowNotFoundError):
            await inventory.get_seats(uuid4())


class TestLabelResolution:

    async def test_resolves_known_labels(self, inventory, show, seats):
        resolved = await inventory.resolve_seat_labels(show.id, ["Stalls-A-1", "Stalls-A-2"])

        assert resolved == {"Stalls-A-1": seats[0].id, "Stalls-A-2": seats[1].id}

    async def test_unknown_label_raises(self, inventory, show):
        with pytest.raises(SeatNotFoundError) as exc_info:
            await inventory.resolve_seat_labels(show.id, ["Stalls-A-1", "Balcony-Z-99"])

        assert exc_info.value.seat_ids == ["Balcony-Z-99"]


class TestPriceUpdates:

    async def test_update_changes_future_price(self, inventory, seats):
        updated = await inventory.update_seat_price(seats[0].id, 5200)

        assert updated.base_price == 5200
        assert (await inventory.get_seat(seats[0].id)).base_price == 5200

    async def test_update_unknown_seat(self, inventory):
        with pytest.raises(SeatNotFoundError):
            await inventory.update_seat_price(uuid4(), 100)

    async def test_existing_hold_keeps_its_price(self, inventory, ledger, seats):
        held = (await ledger.create_holds([seats[0].id], "session-price-1", 600)).unwrap()
        await inventory.update_seat_price(seats[0].id, 9900)

        assert held.total_amount == 4500
        assert (await ledger.get_active_holds("session-price-1")).unwrap().total_amount == 4500
