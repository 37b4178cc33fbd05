"""
Payment gateway implementations.

- RazorpayGateway: creates orders through the Razorpay Orders API
- LocalGateway: mints order ids in process for development and tests

Both verify the checkout confirmation the same way Razorpay signs it:
HMAC-SHA256 of ``"{order_id}|{payment_id}"`` keyed with the key secret.
"""

import hashlib
import hmac
import logging
import uuid
from typing import Optional, Union

import httpx

from shared.config import Settings, get_settings

from .exceptions import PaymentGatewayError
from .models import GatewayOrder

logger = logging.getLogger(__name__)

# Razorpay API endpoint
RAZORPAY_API_BASE = "https://api.razorpay.com/v1"


def compute_signature(key_secret: str, order_id: str, payment_id: str) -> str:
    """Hex HMAC-SHA256 signature of a payment confirmation."""
    message = f"{order_id}|{payment_id}".encode()
    return hmac.new(key_secret.encode(), message, hashlib.sha256).hexdigest()


class _SignatureVerifier:
    def __init__(self, key_id: str, key_secret: str):
        if not key_secret:
            raise ValueError("Payment gateway key secret is required")
        self._key_id = key_id
        self._key_secret = key_secret

    @property
    def key_id(self) -> str:
        return self._key_id

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        expected = compute_signature(self._key_secret, order_id, payment_id)
        return hmac.compare_digest(
            expected.encode(),
            signature.encode("utf-8", "surrogateescape"),
        )


class RazorpayGateway(_SignatureVerifier):
    """Gateway backed by Razorpay.

    Requests use a fresh ``httpx.AsyncClient`` per call with basic auth.
    Tests can pass an ``httpx.MockTransport`` through ``transport``.
    """

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        api_base: str = RAZORPAY_API_BASE,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not key_id:
            raise ValueError(
                "Razorpay key id is required. "
                "Set it via the RAZORPAY_KEY_ID environment variable."
            )
        super().__init__(key_id, key_secret)
        self._api_base = api_base.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    async def create_order(
        self,
        amount_minor: int,
        currency: str,
        receipt: str,
        notes: Optional[dict[str, str]] = None,
    ) -> GatewayOrder:
        try:
            async with httpx.AsyncClient(
                base_url=self._api_base,
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    "/orders",
                    json={
                        "amount": amount_minor,
                        "currency": currency,
                        "receipt": receipt,
                        "notes": notes or {},
                    },
                    auth=(self._key_id, self._key_secret),
                )
        except httpx.TransportError as e:
            logger.error(f"Razorpay order request failed: {type(e).__name__}: {e}")
            raise PaymentGatewayError("Payment gateway is unreachable") from e

        if response.status_code >= 400:
            logger.error(
                f"Razorpay order rejected: HTTP {response.status_code} {response.text[:200]}"
            )
            raise PaymentGatewayError(
                "Payment gateway rejected the order",
                status_code=response.status_code,
            )

        try:
            data = response.json()
            return GatewayOrder(
                order_id=data["id"],
                amount=int(data["amount"]),
                currency=data["currency"],
            )
        except (ValueError, TypeError, KeyError) as e:
            logger.error(f"Razorpay order response unreadable: {type(e).__name__}: {e}")
            raise PaymentGatewayError("Payment gateway returned an invalid order") from e


class LocalGateway(_SignatureVerifier):
    """Gateway that never leaves the process.

    Orders get ``order_local_`` ids. A confirmation can be produced with
    ``sign()``, which is what a checkout would return.
    """

    def __init__(self, key_id: str = "rzp_local", key_secret: str = "local-secret"):
        super().__init__(key_id, key_secret)

    async def create_order(
        self,
        amount_minor: int,
        currency: str,
        receipt: str,
        notes: Optional[dict[str, str]] = None,
    ) -> GatewayOrder:
        return GatewayOrder(
            order_id=f"order_local_{uuid.uuid4().hex[:14]}",
            amount=amount_minor,
            currency=currency,
        )

    def sign(self, order_id: str, payment_id: str) -> str:
        return compute_signature(self._key_secret, order_id, payment_id)


def get_payment_gateway(
    settings: Optional[Settings] = None,
) -> Union[RazorpayGateway, LocalGateway]:
    """Create the gateway selected by ``PAYMENT_GATEWAY``."""
    settings = settings or get_settings()
    if settings.payment_gateway == "razorpay":
        return RazorpayGateway(
            key_id=settings.razorpay_key_id,
            key_secret=settings.razorpay_key_secret,
            api_base=settings.razorpay_api_url,
        )
    return LocalGateway(
        key_id=settings.razorpay_key_id or "rzp_local",
        key_secret=settings.razorpay_key_secret or "local-secret",
    )
