"""
HTTP API tests through the ASGI app.
"""

import json
from typing import List

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from seat_reservation_engine.config import get_settings
from seat_reservation_engine.main import app
from seat_reservation_engine.services.payment_gateway import SIGNATURE_HEADER, SandboxPaymentGateway, sign_webhook_payload
from seat_reservation_engine.utils.dependencies import get_confirmation_dispatcher, get_gateway

ADMIN_HEADERS = {"Authorization": f"Bearer {get_settings().admin_api_token}"}


@pytest.fixture
def gateway() -> SandboxPaymentGateway:
    return SandboxPaymentGateway(base_url="https://sandbox.test/pay")


@pytest.fixture
def dispatched() -> List[str]:
    return []


@pytest_asyncio.fixture
async def client(session_factory, gateway, dispatched):
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_confirmation_dispatcher] = lambda: dispatched.append
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http:
            yield http
    finally:
        app.dependency_overrides.clear()


def signed(event: dict):
    payload = json.dumps(event).encode()
    headers = {
        SIGNATURE_HEADER: sign_webhook_payload(payload, get_settings().payment_webhook_secret),
        "Content-Type": "application/json",
    }
    return payload, headers


def payment_event(session_token: str, reference: str, outcome: str = "succeeded", amount: int = 0) -> dict:
    return {
        "event_id": f"evt_{reference}",
        "outcome": outcome,
        "payment_reference": reference,
        "session_token": session_token,
        "amount_paid": amount,
        "currency": "gbp",
        "payer_email": "grace@example.com",
        "payer_name": "Grace",
    }


async def provision(client) -> tuple:
    show = await client.post("/api/v1/admin/shows", json={
        "title": "Opening Night", "starts_at": "2030-05-01T19:30:00Z", "currency": "GBP"
    }, headers=ADMIN_HEADERS)
    assert show.status_code == 201
    show_id = show.json()["id"]

    seats = await client.post(f"/api/v1/admin/shows/{show_id}/seats", json={"seats": [
        {"label": "A1", "section": "Stalls", "row": "A", "number": "1", "base_price": 4500},
        {"label": "A2", "section": "Stalls", "row": "A", "number": "2", "base_price": 4500},
        {"label": "B1", "section": "Stalls", "row": "B", "number": "1", "base_price": 3000},
    ]}, headers=ADMIN_HEADERS)
    assert seats.status_code == 201
    return show_id, {seat["label"]: seat["id"] for seat in seats.json()}


class TestHealth:

    async def test_root_and_health(self, client):
        assert (await client.get("/")).json()["status"] == "operational"
        assert (await client.get("/health")).json()["status"] == "healthy"

    async def test_detailed_health_without_redis(self, client):
        body = (await client.get("/health/detailed")).json()

        services = {service["service"]: service for service in body["services"]}
        assert services["database"]["healthy"]
        assert body["status"] in {"healthy", "degraded"}


class TestAdmin:

    async def test_requires_token(self, client):
        missing = await client.post("/api/v1/admin/reaper/sweep")
        wrong = await client.post("/api/v1/admin/reaper/sweep", headers={"Authorization": "Bearer nope"})

        assert missing.status_code == 401
        assert wrong.status_code == 401
        assert missing.json()["error"]["error_code"] == "UNAUTHORIZED"

    async def test_sweep(self, client):
        response = await client.post("/api/v1/admin/reaper/sweep", headers=ADMIN_HEADERS)

        assert response.status_code == 200
        assert response.json() == {"released_count": 0, "succeeded": True}

    async def test_price_update(self, client):
        _, seats = await provision(client)

        response = await client.patch(
            f"/api/v1/admin/seats/{seats['A1']}/price", json={"base_price": 5000}, headers=ADMIN_HEADERS
        )

        assert response.status_code == 200
        assert (await client.get(f"/api/v1/seats/{seats['A1']}")).json()["base_price"] == 5000


class TestSeatsAndHolds:

    async def test_seat_map_and_availability(self, client):
        show_id, seats = await provision(client)

        listed = await client.get(f"/api/v1/shows/{show_id}/seats")
        availability = await client.get(f"/api/v1/shows/{show_id}/availability")

        assert [seat["label"] for seat in listed.json()] == ["A1", "A2", "B1"]
        body = availability.json()
        assert set(body["seats"].values()) == {"available"}
        assert body["summary"] == {"available": 3, "held": 0, "sold": 0, "total": 3}

    async def test_hold_by_label_and_conflict(self, client):
        show_id, seats = await provision(client)

        created = await client.post("/api/v1/holds", json={
            "show_id": show_id, "seat_labels": ["A1", "B1"], "session_token": "session-api-1", "ttl_seconds": 300
        })
        conflict = await client.post("/api/v1/holds", json={"seat_ids": [seats["B1"], seats["A2"]]})

        assert created.status_code == 201
        assert created.json()["total_amount"] == 7500
        assert conflict.status_code == 409
        assert conflict.json()["error"]["details"]["conflicting_seat_ids"] == [seats["B1"]]

        availability = (await client.get(f"/api/v1/shows/{show_id}/availability")).json()
        assert availability["seats"][seats["A1"]] == "held"
        assert availability["seats"][seats["A2"]] == "available"

    async def test_generated_session_token(self, client):
        _, seats = await provision(client)

        created = await client.post("/api/v1/holds", json={"seat_ids": [seats["A2"]]})

        token = created.json()["session_token"]
        assert len(token) >= 16
        assert (await client.get(f"/api/v1/holds/{token}")).status_code == 200

    async def test_extend_and_cancel(self, client):
        _, seats = await provision(client)
        await client.post("/api/v1/holds", json={"seat_ids": [seats["A1"]], "session_token": "session-api-2"})

        extended = await client.post("/api/v1/holds/session-api-2/extend", json={"additional_seconds": 60})
        cancelled = await client.delete("/api/v1/holds/session-api-2")
        gone = await client.get("/api/v1/holds/session-api-2")

        assert extended.status_code == 200
        assert cancelled.json() == {"session_token": "session-api-2", "cancelled_count": 1}
        assert gone.status_code == 410
        assert gone.json()["error"]["error_code"] == "HOLD_NOT_FOUND"

    @pytest.mark.parametrize("body, error_code", [
        ({"seat_ids": []}, "EMPTY_SELECTION"),
        ({"seat_ids": ["6f1c2b3a-0000-4000-8000-000000000001"], "ttl_seconds": 999999}, "VALIDATION_ERROR"),
    ])
    async def test_selection_errors(self, client, body, error_code):
        response = await client.post("/api/v1/holds", json=body)

        assert response.status_code == 422
        assert response.json()["error"]["error_code"] == error_code

    async def test_unknown_label(self, client):
        show_id, _ = await provision(client)

        response = await client.post("/api/v1/holds", json={"show_id": show_id, "seat_labels": ["Z9"]})

        assert response.status_code == 404


class TestCheckoutFlow:

    async def test_pay_and_book(self, client, gateway, dispatched):
        show_id, seats = await provision(client)
        await client.post("/api/v1/holds", json={
            "seat_ids": [seats["A1"], seats["A2"]], "session_token": "session-api-pay"
        })

        checkout = await client.post("/api/v1/checkout", json={"session_token": "session-api-pay"})
        assert checkout.status_code == 200
        assert checkout.json()["amount"] == 9000
        assert checkout.json()["payment_session_id"] in gateway.sessions

        payload, headers = signed(payment_event("session-api-pay", "pay_api_1", amount=9000))
        first = await client.post("/api/v1/webhooks/payments", content=payload, headers=headers)
        redelivered = await client.post("/api/v1/webhooks/payments", content=payload, headers=headers)

        assert first.status_code == 200
        assert first.json()["action"] == "created"
        assert redelivered.json()["action"] == "duplicate_reference"
        assert redelivered.json()["booking_id"] == first.json()["booking_id"]
        assert dispatched == [first.json()["booking_id"]]

        booking = (await client.get("/api/v1/bookings/pay_api_1")).json()
        assert booking["status"] == "confirmed"
        assert booking["total_amount"] == 9000
        assert {seat["seat_id"] for seat in booking["seats"]} == {seats["A1"], seats["A2"]}

        by_session = await client.get("/api/v1/bookings/session/session-api-pay")
        by_code = await client.get(f"/api/v1/bookings/validation/{first.json()['validation_code']}")
        assert by_session.json()["id"] == booking["id"] == by_code.json()["id"]

        availability = (await client.get(f"/api/v1/shows/{show_id}/availability")).json()
        assert availability["summary"]["sold"] == 2

        cancelled = await client.post(
            "/api/v1/admin/bookings/pay_api_1/cancel", json={"refunded": True}, headers=ADMIN_HEADERS
        )
        assert cancelled.json()["status"] == "refunded"

    async def test_checkout_without_holds(self, client):
        response = await client.post("/api/v1/checkout", json={"session_token": "session-none"})

        assert response.status_code == 410

    async def test_failed_payment_changes_nothing(self, client, dispatched):
        _, seats = await provision(client)
        await client.post("/api/v1/holds", json={"seat_ids": [seats["B1"]], "session_token": "session-api-fail"})

        payload, headers = signed(payment_event("session-api-fail", "pay_api_fail", outcome="failed"))
        response = await client.post("/api/v1/webhooks/payments", content=payload, headers=headers)

        assert response.json()["action"] == "ignored"
        assert dispatched == []
        assert (await client.get("/api/v1/holds/session-api-fail")).status_code == 200

    async def test_payment_after_expiry_is_acknowledged(self, client):
        payload, headers = signed(payment_event("session-api-expired", "pay_api_expired"))

        response = await client.post("/api/v1/webhooks/payments", content=payload, headers=headers)

        assert response.status_code == 200
        assert response.json()["action"] == "reservation_expired"
        assert (await client.get("/api/v1/bookings/pay_api_expired")).status_code == 404

    async def test_bad_signature(self, client):
        payload, headers = signed(payment_event("session-api-x", "pay_api_x"))
        headers[SIGNATURE_HEADER] = headers[SIGNATURE_HEADER][:-4] + "0000"

        response = await client.post("/api/v1/webhooks/payments", content=payload, headers=headers)

        assert response.status_code == 400
        assert response.json()["error"]["error_code"] == "INVALID_WEBHOOK_SIGNATURE"

    async def test_malformed_event(self, client):
        payload, headers = signed({"outcome": "maybe"})

        response = await client.post("/api/v1/webhooks/payments", content=payload, headers=headers)

        assert response.status_code == 422
