"""
Tests for seat holds: creation, atomicity, cancellation and extension.
"""

import asyncio
from datetime import timedelta
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from seat_reservation_engine.models import Hold, HoldStatus
from seat_reservation_engine.utils.clock import as_utc, utcnow
from seat_reservation_engine.utils.exceptions import (
    EmptySelectionError,
    HoldNotFoundError,
    MixedShowSelectionError,
    SeatNotFoundError,
    SeatUnavailableError,
    TooManySeatsError,
    ValidationError,
)
from seat_reservation_engine.utils.result import Err, Ok

from .conftest import create_show_with_seats


async def count_holds(session_factory, status=HoldStatus.ACTIVE) -> int:
    async with session_factory() as session:
        return await session.scalar(select(func.count(Hold.id)).where(Hold.status == status))


class TestCreateHolds:

    async def test_holds_every_requested_seat(self, ledger, show, seats):
        result = await ledger.create_holds([seats[0].id, seats[2].id], "session-create-1", 600)

        assert isinstance(result, Ok)
        hold_set = result.value
        assert hold_set.session_token == "session-create-1"
        assert hold_set.show_id == show.id
        assert hold_set.seat_ids == {seats[0].id, seats[2].id}
        assert hold_set.total_amount == 4500 + 3000

        remaining = hold_set.expires_at - utcnow()
        assert timedelta(seconds=590) < remaining <= timedelta(seconds=600)

    async def test_default_ttl_is_used(self, ledger, seats):
        hold_set = (await ledger.create_holds([seats[0].id], "session-default-ttl")).unwrap()

        assert hold_set.expires_at - utcnow() > timedelta(seconds=ledger.settings.hold_ttl_seconds - 10)

    async def test_held_seat_is_unavailable(self, ledger, seats):
        (await ledger.create_holds([seats[0].id], "session-first", 600)).unwrap()

        result = await ledger.create_holds([seats[0].id], "session-second", 600)

        assert isinstance(result, Err)
        assert isinstance(result.error, SeatUnavailableError)
        assert result.error.conflicting_seat_ids == [str(seats[0].id)]

    async def test_batch_is_all_or_nothing(self, session_factory, ledger, seats):
        a, b, c = seats[0].id, seats[1].id, seats[2].id
        (await ledger.create_holds([b], "session-holder", 600)).unwrap()

        result = await ledger.create_holds([a, b, c], "session-batch", 600)

        assert isinstance(result.error, SeatUnavailableError)
        assert result.error.conflicting_seat_ids == [str(b)]
        assert await count_holds(session_factory) == 1

        # A and C are still free
        assert (await ledger.create_holds([a, c], "session-other", 600)).is_ok

    async def test_empty_selection(self, ledger):
        result = await ledger.create_holds([], "session-empty", 600)

        assert isinstance(result.error, EmptySelectionError)

    async def test_unknown_seat(self, ledger, seats):
        missing = uuid4()

        result = await ledger.create_holds([seats[0].id, missing], "session-missing", 600)

        assert isinstance(result.error, SeatNotFoundError)
        assert result.error.seat_ids == [str(missing)]

    async def test_seats_from_two_shows(self, inventory, ledger, seats):
        _, other_seats = await create_show_with_seats(inventory, [1000], row="Z")

        result = await ledger.create_holds([seats[0].id, other_seats[0].id], "session-mixed", 600)

        assert isinstance(result.error, MixedShowSelectionError)

    async def test_second_batch_must_stay_on_the_same_show(self, inventory, ledger, seats):
        _, other_seats = await create_show_with_seats(inventory, [1000], row="Z")
        (await ledger.create_holds([seats[0].id], "session-two-shows", 600)).unwrap()

        result = await ledger.create_holds([other_seats[0].id], "session-two-shows", 600)

        assert isinstance(result.error, MixedShowSelectionError)

    async def test_seat_cap_spans_batches(self, inventory, ledger):
        cap = ledger.settings.max_seats_per_hold
        _, many = await create_show_with_seats(inventory, [1000] * (cap + 1), row="M")

        assert isinstance((await ledger.create_holds([s.id for s in many], "session-cap", 600)).error, TooManySeatsError)

        (await ledger.create_holds([s.id for s in many[:cap]], "session-cap", 600)).unwrap()
        result = await ledger.create_holds([many[cap].id], "session-cap", 600)
        assert isinstance(result.error, TooManySeatsError)

    @pytest.mark.parametrize("ttl", [0, -5, 10_000])
    async def test_ttl_out_of_range(self, ledger, seats, ttl):
        result = await ledger.create_holds([seats[0].id], "session-ttl", ttl)

        assert isinstance(result.error, ValidationError)

    async def test_stale_hold_is_expired_in_place(self, session_factory, ledger, seats):
        (await ledger.create_holds([seats[0].id], "session-stale", 1)).unwrap()
        await asyncio.sleep(1.2)

        result = await ledger.create_holds([seats[0].id], "session-fresh", 600)

        assert result.is_ok
        assert await count_holds(session_factory, HoldStatus.EXPIRED) == 1

    async def test_sold_seat_cannot_be_held(self, ledger, confirmation, seats):
        (await ledger.create_holds([seats[0].id], "session-sold", 600)).unwrap()
        (await confirmation.confirm_reservation("session-sold", "pay_sold", "a@example.com", "A")).unwrap()

        result = await ledger.create_holds([seats[0].id], "session-late", 600)

        assert isinstance(result.error, SeatUnavailableError)


class TestCancelHolds:

    async def test_cancel_releases_seats(self, session_factory, ledger, seats):
        (await ledger.create_holds([seats[0].id, seats[1].id], "session-cancel", 600)).unwrap()

        assert (await ledger.cancel_holds("session-cancel")).unwrap() == 2
        assert await count_holds(session_factory, HoldStatus.CANCELLED) == 2
        assert (await ledger.create_holds([seats[0].id], "session-next", 600)).is_ok

    async def test_cancel_is_idempotent(self, ledger, seats):
        (await ledger.create_holds([seats[0].id], "session-twice", 600)).unwrap()
        await ledger.cancel_holds("session-twice")

        assert (await ledger.cancel_holds("session-twice")).unwrap() == 0
        assert (await ledger.cancel_holds("session-never-existed")).unwrap() == 0


class TestExtendHolds:

    async def test_extend_moves_expiry_forward(self, session_factory, ledger, seats):
        created = (await ledger.create_holds([seats[0].id, seats[1].id], "session-extend", 60)).unwrap()

        extended = (await ledger.extend_holds("session-extend", 120)).unwrap()

        assert extended.expires_at == created.expires_at + timedelta(seconds=120)
        async with session_factory() as session:
            stored = (await session.execute(
                select(Hold.expires_at).where(Hold.session_token == "session-extend")
            )).scalars().all()
        assert {as_utc(value) for value in stored} == {extended.expires_at}

    async def test_extend_without_live_holds(self, ledger):
        result = await ledger.extend_holds("session-nothing", 60)

        assert isinstance(result.error, HoldNotFoundError)

    async def test_extend_after_expiry(self, ledger, seats):
        (await ledger.create_holds([seats[0].id], "session-lapsed", 1)).unwrap()
        await asyncio.sleep(1.2)

        result = await ledger.extend_holds("session-lapsed", 60)

        assert isinstance(result.error, HoldNotFoundError)

    async def test_extension_is_capped(self, ledger, seats):
        max_ttl = ledger.settings.max_hold_ttl_seconds
        (await ledger.create_holds([seats[0].id], "session-cap-ext", max_ttl)).unwrap()

        result = await ledger.extend_holds("session-cap-ext", 60)

        assert isinstance(result.error, ValidationError)


class TestGetActiveHolds:

    async def test_returns_live_holds(self, ledger, seats):
        (await ledger.create_holds([seats[3].id], "session-live", 600)).unwrap()

        hold_set = (await ledger.get_active_holds("session-live")).unwrap()

        assert hold_set.seat_ids == {seats[3].id}
        assert hold_set.total_amount == 3000

    async def test_cancelled_holds_are_not_live(self, ledger, seats):
        (await ledger.create_holds([seats[3].id], "session-gone", 600)).unwrap()
        await ledger.cancel_holds("session-gone")

        assert isinstance((await ledger.get_active_holds("session-gone")).error, HoldNotFoundError)
