"""
Payment Provider Protocol - Provider-agnostic interface.
"""

from dataclasses import dataclass, field
from typing import Any, Protocol

from aniverse.models.domain import PaymentCapture


@dataclass(frozen=True)
class Order:
    """
    Provider-agnostic order.

    `raw` keeps the provider's order object, which is what clients receive.
    """

    order_id: str
    amount_minor: int
    currency: str
    status: str
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class WebhookEvent:
    """
    Provider-agnostic webhook event.

    `capture` is set only for successful-payment events.
    """

    event_type: str
    capture: PaymentCapture | None = None


class PaymentProvider(Protocol):
    """
    Payment provider protocol.

    Any payment provider must implement this interface.
    """

    async def create_order(self, amount_major: int) -> Order:
        """
        Create an order for the given amount in major currency units.

        Raises:
            PaymentProviderError: If order creation fails
        """
        ...

    async def verify_webhook(self, payload: bytes, signature: str) -> WebhookEvent:
        """
        Verify and parse webhook event from provider.

        Args:
            payload: Raw webhook payload, byte-for-byte as received
            signature: Signature header value

        Raises:
            WebhookVerificationError: If signature verification fails
        """
        ...
