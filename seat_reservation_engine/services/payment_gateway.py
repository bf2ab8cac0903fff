"""
Payment Gateway Adapter.

The engine never talks to a provider SDK. It creates payment sessions
through ``PaymentGateway`` and accepts signed outcome notifications whose
signature is checked by ``verify_webhook_signature``.
"""

import hashlib
import hmac
import logging
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional

import httpx

from ..config import Settings, get_settings
from ..utils.exceptions import InvalidWebhookSignatureError, PaymentServiceError
from ..utils.retry import retry_on_external_service_error

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Payment-Signature"


@dataclass(frozen=True)
class PaymentSession:
    session_id: str
    redirect_url: str


class PaymentGateway(ABC):
    """Abstract payment provider."""

    @abstractmethod
    async def create_payment_session(
        self,
        amount: int,
        currency: str,
        metadata: Dict[str, str]
    ) -> PaymentSession:
        """
        Create a hosted payment page for ``amount`` minor units.

        ``metadata`` carries ``session_token`` and ``show_id`` and is echoed
        back in the outcome notification.
        """

    async def close(self) -> None:
        return None


class SandboxPaymentGateway(PaymentGateway):
    """Local gateway for development and tests. Sessions are never charged."""

    def __init__(self, base_url: str = "http://localhost:8000/sandbox/pay"):
        self.base_url = base_url.rstrip("/")
        self.sessions: Dict[str, Dict[str, object]] = {}

    async def create_payment_session(self, amount, currency, metadata):
        session_id = f"sbx_{uuid.uuid4().hex}"
        self.sessions[session_id] = {"amount": amount, "currency": currency, "metadata": dict(metadata)}
        logger.info(f"Sandbox payment session {session_id} for {amount} {currency}")
        return PaymentSession(session_id=session_id, redirect_url=f"{self.base_url}/{session_id}")


def payment_idempotency_key(amount: int, currency: str, metadata: Dict[str, str]) -> str:
    """
    Provider idempotency key for one priced hold set.

    A checkout attempt can gain seats between payment attempts, so the key
    covers the amount, currency and seats as well as the session token.
    """
    session_token = metadata.get("session_token", "")
    seat_ids = ",".join(sorted(filter(None, metadata.get("seat_ids", "").split(","))))
    material = f"{session_token}|{amount}|{currency.lower()}|{seat_ids}"
    return f"{session_token}-{hashlib.sha256(material.encode()).hexdigest()[:32]}"


class HostedPaymentGateway(PaymentGateway):
    """
    Gateway speaking a hosted-checkout HTTP API.

    POSTs ``{amount, currency, metadata, success_url, cancel_url}`` to
    ``{payment_gateway_url}/sessions`` and expects ``{id, url}`` back.
    """

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        if not settings.payment_gateway_url:
            raise ValueError("payment_gateway_url must be set for the hosted gateway")
        self.settings = settings
        self.client = client or httpx.AsyncClient(
            base_url=settings.payment_gateway_url,
            timeout=settings.payment_gateway_timeout_seconds,
            headers={"Authorization": f"Bearer {settings.payment_gateway_api_key or ''}"},
        )

    @retry_on_external_service_error()
    async def create_payment_session(self, amount, currency, metadata):
        payload = {
            "amount": amount,
            "currency": currency,
            "metadata": dict(metadata),
            "success_url": self.settings.checkout_success_url,
            "cancel_url": self.settings.checkout_cancel_url,
        }
        try:
            response = await self.client.post(
                "/sessions",
                json=payload,
                headers={"Idempotency-Key": payment_idempotency_key(amount, currency, metadata)},
            )
        except httpx.TransportError as e:
            raise PaymentServiceError(f"transport error: {e}") from e

        if response.status_code >= 500:
            raise PaymentServiceError(f"provider returned {response.status_code}", status_code=response.status_code)
        if response.status_code >= 400:
            # Client errors are not retried
            raise ValueError(f"Payment provider rejected session: {response.status_code} {response.text}")

        body = response.json()
        return PaymentSession(session_id=body["id"], redirect_url=body["url"])

    async def close(self) -> None:
        await self.client.aclose()


def get_payment_gateway(settings: Optional[Settings] = None) -> PaymentGateway:
    """Build the gateway selected by ``payment_gateway``."""
    settings = settings or get_settings()
    if settings.payment_gateway == "hosted":
        return HostedPaymentGateway(settings)
    if settings.payment_gateway == "sandbox":
        return SandboxPaymentGateway()
    raise ValueError(f"Unknown payment gateway '{settings.payment_gateway}'")


def sign_webhook_payload(payload: bytes, secret: str, timestamp: Optional[int] = None) -> str:
    """Build a ``t=<unix>,v1=<hex hmac>`` signature header for ``payload``."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.".encode() + payload
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def verify_webhook_signature(
    payload: bytes,
    header: Optional[str],
    secret: str,
    tolerance_seconds: int = 300,
    now: Optional[float] = None
) -> None:
    """
    Check a ``t=<unix>,v1=<hex>`` signature over ``<t>.<payload>``.

    Raises:
        InvalidWebhookSignatureError: If the header is missing, malformed,
            outside the tolerance window, or no ``v1`` digest matches
    """
    if not header:
        raise InvalidWebhookSignatureError("missing signature header")

    timestamp = None
    candidates = []
    for part in header.split(","):
        key, _, value = part.strip().partition("=")
        if key == "t":
            timestamp = value
        elif key == "v1":
            candidates.append(value)

    if timestamp is None or not timestamp.isdigit() or not candidates:
        raise InvalidWebhookSignatureError("malformed signature header")

    now = time.time() if now is None else now
    if abs(now - int(timestamp)) > tolerance_seconds:
        raise InvalidWebhookSignatureError("timestamp outside tolerance")

    expected = hmac.new(
        secret.encode(), f"{timestamp}.".encode() + payload, hashlib.sha256
    ).hexdigest()
    if not any(hmac.compare_digest(expected, candidate) for candidate in candidates):
        raise InvalidWebhookSignatureError("signature mismatch")
