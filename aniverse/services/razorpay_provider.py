"""
Razorpay Payment Provider Implementation.

Orders go through the Razorpay REST API; webhooks are authenticated with
an HMAC-SHA256 of the raw body keyed by the webhook secret.
"""

import hashlib
import hmac
import json

import httpx
from structlog import get_logger

from aniverse.exceptions import PaymentProviderError, WebhookVerificationError
from aniverse.models.domain import PaymentCapture
from aniverse.services.payment_provider import Order, WebhookEvent

logger = get_logger(__name__)

PAYMENT_CAPTURED = "payment.captured"


class RazorpayProvider:
    """
    Razorpay payment provider implementation.

    Implements the PaymentProvider protocol for Razorpay.
    """

    ORDERS_URL = "https://api.razorpay.com/v1/orders"
    PROVIDER_NAME = "razorpay"

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        webhook_secret: str,
        currency: str = "INR",
        timeout_seconds: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.key_id = key_id
        self.key_secret = key_secret
        self.webhook_secret = webhook_secret
        self.currency = currency
        self.timeout_seconds = timeout_seconds
        self._http_client = http_client

    @property
    def http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout_seconds)
        return self._http_client

    async def create_order(self, amount_major: int) -> Order:
        """
        Create a Razorpay order.

        Args:
            amount_major: Amount in major currency units (rupees)

        Raises:
            PaymentProviderError: If the Razorpay API call fails
        """
        if not self.key_id or not self.key_secret:
            raise PaymentProviderError("Razorpay credentials not configured")

        payload = {"amount": amount_major * 100, "currency": self.currency}
        logger.info("creating_razorpay_order", amount_minor=payload["amount"], currency=self.currency)

        try:
            response = await self.http_client.post(
                self.ORDERS_URL,
                json=payload,
                auth=(self.key_id, self.key_secret),
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "razorpay_order_failed",
                status=exc.response.status_code,
                text=exc.response.text,
            )
            raise PaymentProviderError(
                f"Razorpay order failed with {exc.response.status_code}"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("razorpay_order_error", error=str(exc), error_type=type(exc).__name__)
            raise PaymentProviderError(f"Razorpay order failed: {exc}") from exc

        logger.info("razorpay_order_created", order_id=data.get("id"), status=data.get("status"))

        return Order(
            order_id=data.get("id", ""),
            amount_minor=data.get("amount", payload["amount"]),
            currency=data.get("currency", self.currency),
            status=data.get("status", ""),
            raw=data,
        )

    def compute_signature(self, payload: bytes) -> str:
        """Hex HMAC-SHA256 of the raw body."""
        return hmac.new(self.webhook_secret.encode(), payload, hashlib.sha256).hexdigest()

    async def verify_webhook(self, payload: bytes, signature: str) -> WebhookEvent:
        """
        Verify and parse a Razorpay webhook event.

        Args:
            payload: Raw webhook payload
            signature: X-Razorpay-Signature header value

        Raises:
            WebhookVerificationError: Signature mismatch or unreadable envelope
        """
        if not self.webhook_secret:
            logger.error("razorpay_webhook_secret_missing")
            raise WebhookVerificationError("Webhook secret not configured")

        expected = self.compute_signature(payload)
        if not signature or not hmac.compare_digest(expected.encode(), signature.encode()):
            logger.warning("razorpay_webhook_signature_mismatch", signature_present=bool(signature))
            raise WebhookVerificationError("Invalid signature")

        try:
            envelope = json.loads(payload)
            event_type = envelope.get("event", "")
            capture = None
            if event_type == PAYMENT_CAPTURED:
                entity = envelope["payload"]["payment"]["entity"]
                capture = PaymentCapture(
                    payment_id=str(entity["id"]),
                    amount_minor=int(entity["amount"]),
                    currency=str(entity.get("currency") or self.currency).upper(),
                    email=entity.get("email"),
                    provider=self.PROVIDER_NAME,
                )
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.error("razorpay_webhook_parsing_failed", error=str(exc))
            raise WebhookVerificationError(f"Failed to parse Razorpay webhook: {exc}") from exc

        logger.info("razorpay_webhook_verified", event_type=event_type)
        return WebhookEvent(event_type=event_type, capture=capture)

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
