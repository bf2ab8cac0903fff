"""
Tests for starting payments and applying payment outcomes.
"""

from datetime import timedelta
from typing import List

import pytest

from seat_reservation_engine.schemas.payment import PaymentOutcomeEvent
from seat_reservation_engine.schemas.seat import SeatCreate
from seat_reservation_engine.services.checkout_service import CheckoutService
from seat_reservation_engine.services.payment_gateway import SandboxPaymentGateway
from seat_reservation_engine.utils.clock import utcnow


@pytest.fixture
def gateway() -> SandboxPaymentGateway:
    return SandboxPaymentGateway()


@pytest.fixture
def dispatched() -> List[str]:
    return []


@pytest.fixture
def checkout(ledger, confirmation, gateway, dispatched) -> CheckoutService:
    return CheckoutService(ledger, confirmation, gateway, dispatch_confirmation=dispatched.append)


async def create_dollar_show(inventory):
    show = await inventory.create_show("Matinee", utcnow() + timedelta(days=3), "USD")
    seats = await inventory.provision_seats(show.id, [
        SeatCreate(section="Balcony", row="C", number=str(number), base_price=6000, position_x=number)
        for number in (1, 2)
    ])
    return show, seats


class TestStartCheckout:

    async def test_charges_in_show_currency(self, inventory, ledger, confirmation, checkout, gateway):
        _, seats = await create_dollar_show(inventory)
        (await ledger.create_holds([seats[0].id], "session-dollars", 600)).unwrap()

        session = (await checkout.start_checkout("session-dollars")).unwrap()
        booking = (await confirmation.confirm_reservation(
            "session-dollars", "pay_dollars", "d@example.com", "D", amount_paid=session.amount
        )).unwrap().booking

        assert session.currency == "usd"
        assert gateway.sessions[session.payment_session.session_id]["currency"] == "usd"
        assert session.currency == booking.currency

    async def test_metadata_lists_held_seats(self, ledger, checkout, gateway, seats):
        (await ledger.create_holds([seats[2].id], "session-metadata", 600)).unwrap()
        (await ledger.create_holds([seats[0].id], "session-metadata", 600)).unwrap()

        session = (await checkout.start_checkout("session-metadata")).unwrap()

        metadata = gateway.sessions[session.payment_session.session_id]["metadata"]
        assert metadata["session_token"] == "session-metadata"
        assert metadata["seat_ids"] == ",".join(sorted([str(seats[0].id), str(seats[2].id)]))
        assert session.amount == seats[0].base_price + seats[2].base_price
        assert session.currency == "gbp"


class TestPaymentOutcome:

    async def test_currency_reported_by_provider_is_checked(self, ledger, checkout, seats, dispatched, escalations):
        (await ledger.create_holds([seats[0].id], "session-outcome", 600)).unwrap()
        event = PaymentOutcomeEvent(
            outcome="succeeded",
            payment_reference="pay_outcome",
            session_token="session-outcome",
            amount_paid=seats[0].base_price,
            currency="eur",
            payer_email="o@example.com",
            payer_name="O",
        )

        confirmed = (await checkout.handle_payment_outcome(event)).unwrap()

        assert dispatched == [str(confirmed.booking.id)]
        assert [record.event_type for record in escalations] == ["payment_currency_mismatch"]
