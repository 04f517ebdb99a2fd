"""
Domain Models - Internal business logic models using dataclasses.

All data structures are strongly typed immutable dataclasses.
"""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from aniverse.exceptions import ClientInputError

ALLOWED_IMAGE_TYPES = frozenset({"image/jpeg", "image/png", "image/webp"})


@dataclass(frozen=True)
class GenerationRequest:
    """Validated input for one generation."""

    email: str
    name: str
    role: str
    style: str
    image_bytes: bytes
    mime_type: str

    def __post_init__(self) -> None:
        """Validate request fields."""
        missing = [
            field
            for field in ("email", "name", "role", "style")
            if not getattr(self, field).strip()
        ]
        if missing or not self.image_bytes:
            raise ClientInputError("Missing required fields")
        if self.mime_type not in ALLOWED_IMAGE_TYPES:
            raise ClientInputError("Only JPG, PNG, WEBP allowed")


@dataclass(frozen=True)
class GeneratedImage:
    """Raw image bytes returned by the image model."""

    data: bytes
    mime_type: str


@dataclass(frozen=True)
class GenerationOutcome:
    """Result of the generation workflow."""

    image_url: str
    remaining_credits: int
    demo: bool = False


@dataclass(frozen=True)
class UserData:
    """Immutable user snapshot."""

    user_id: UUID
    email: str
    credits: int
    created_at: datetime


@dataclass(frozen=True)
class GenerationData:
    """Immutable generation record after persistence."""

    generation_id: UUID
    user_id: UUID
    style: str
    role: str
    image_url: str
    created_at: datetime


@dataclass(frozen=True)
class PaymentCapture:
    """A captured payment as reported by the payment provider."""

    payment_id: str
    amount_minor: int
    currency: str
    email: str | None
    provider: str = "razorpay"

    @property
    def credits_added(self) -> int:
        """One credit per whole major currency unit paid."""
        return max(self.amount_minor, 0) // 100


@dataclass(frozen=True)
class PaymentApplication:
    """Outcome of applying a captured payment to the ledger."""

    payment_id: str
    user_id: UUID | None
    credits_added: int
    balance_after: int | None
    duplicate: bool = False

    @property
    def applied(self) -> bool:
        return self.user_id is not None and not self.duplicate
