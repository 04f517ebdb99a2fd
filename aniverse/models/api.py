"""
API Models - Pydantic models for request/response validation.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class StatusResponse(BaseModel):
    """GET / response."""

    status: str


class ErrorResponse(BaseModel):
    """JSON body for every error response."""

    error: str


# ============================================================================
# Generation Models
# ============================================================================


class GenerateResponse(BaseModel):
    """POST /generate response (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool = True
    image_url: str
    remaining_credits: int
    demo: bool | None = None


class GenerationItem(BaseModel):
    """A stored generation as listed by the gallery endpoints."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    style: str
    role: str
    image_url: str
    created_at: datetime


# ============================================================================
# User Models
# ============================================================================


class UserResponse(BaseModel):
    """GET /user response."""

    email: str
    credits: int
    created_at: datetime


# ============================================================================
# Payment Models
# ============================================================================


class CreateOrderRequest(BaseModel):
    """POST /create-order request body."""

    amount: int = Field(..., gt=0, description="Amount in major currency units")


class WebhookAck(BaseModel):
    """Acknowledgement returned to the payment provider."""

    status: str = "ok"
