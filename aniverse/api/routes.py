"""
API Routes - Generation, payments, users and galleries.

Every error leaves as JSON `{"error": ...}` with the status code carrying
the category.
"""

from typing import Any

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from aniverse.api.dependencies import get_ai_provider, get_payment_provider, get_storage
from aniverse.config import settings
from aniverse.db.session import get_db
from aniverse.exceptions import (
    ClientInputError,
    InsufficientCreditsError,
    PaymentProviderError,
    WebhookVerificationError,
)
from aniverse.models.api import (
    CreateOrderRequest,
    ErrorResponse,
    GenerateResponse,
    GenerationItem,
    UserResponse,
    WebhookAck,
)
from aniverse.models.domain import GenerationData, GenerationRequest
from aniverse.observability.metrics import metrics
from aniverse.services.ai_provider import AIProvider
from aniverse.services.generation import GenerationWorkflow
from aniverse.services.ledger import LedgerService
from aniverse.services.payment_provider import PaymentProvider
from aniverse.services.storage import BlobStore

logger = get_logger(__name__)

router = APIRouter()

ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
}


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _require_email(email: str | None) -> str:
    if not email or not email.strip():
        raise ClientInputError("email query parameter is required")
    return email.strip()


def _to_item(generation: GenerationData) -> GenerationItem:
    return GenerationItem(
        id=generation.generation_id,
        user_id=generation.user_id,
        style=generation.style,
        role=generation.role,
        image_url=generation.image_url,
        created_at=generation.created_at,
    )


# =============================================================================
# Generation
# =============================================================================


@router.post(
    "/generate",
    response_model=GenerateResponse,
    response_model_exclude_none=True,
    responses={**ERROR_RESPONSES, status.HTTP_403_FORBIDDEN: {"model": ErrorResponse}},
)
async def generate(
    image: UploadFile | None = File(None),
    email: str | None = Form(None),
    name: str | None = Form(None),
    role: str | None = Form(None),
    style: str | None = Form(None),
    db: AsyncSession = Depends(get_db),
    ai_provider: AIProvider = Depends(get_ai_provider),
    storage: BlobStore = Depends(get_storage),
) -> GenerateResponse | JSONResponse:
    """
    Generate an anime portrait from an uploaded photo.

    Charges one credit on success only. Provider quota exhaustion returns a
    demo placeholder without charging.
    """
    try:
        request = GenerationRequest(
            email=(email or "").strip(),
            name=name or "",
            role=role or "",
            style=style or "",
            image_bytes=await image.read() if image is not None else b"",
            mime_type=(image.content_type or "") if image is not None else "",
        )
    except ClientInputError as exc:
        logger.info("generate_request_rejected", reason=exc.message)
        return _error(status.HTTP_400_BAD_REQUEST, exc.message)

    workflow = GenerationWorkflow(
        ledger=LedgerService(db),
        ai_provider=ai_provider,
        storage=storage,
        demo_image_url=settings.demo_image_url,
    )

    try:
        outcome = await workflow.run(request)
    except InsufficientCreditsError as exc:
        return _error(status.HTTP_403_FORBIDDEN, str(exc))
    except Exception as exc:
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))

    return GenerateResponse(
        image_url=outcome.image_url,
        remaining_credits=outcome.remaining_credits,
        demo=True if outcome.demo else None,
    )


# =============================================================================
# Payments
# =============================================================================


@router.post("/create-order", responses=ERROR_RESPONSES)
async def create_order(
    body: CreateOrderRequest,
    payments: PaymentProvider = Depends(get_payment_provider),
) -> Any:
    """Create a payment-provider order; returns the provider's order object."""
    try:
        order = await payments.create_order(body.amount)
    except PaymentProviderError as exc:
        metrics.record_error(type(exc).__name__, "create_order")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, exc.message)

    return order.raw


@router.post("/razorpay-webhook", response_model=WebhookAck, responses=ERROR_RESPONSES)
async def razorpay_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    payments: PaymentProvider = Depends(get_payment_provider),
) -> WebhookAck | JSONResponse:
    """
    Handle Razorpay webhook events.

    Verified events are always acknowledged so the provider does not retry,
    whether or not a matching user exists.
    """
    payload = await request.body()
    signature = request.headers.get("x-razorpay-signature", "")

    try:
        event = await payments.verify_webhook(payload, signature)
    except WebhookVerificationError as exc:
        metrics.record_payment("rejected")
        logger.warning("razorpay_webhook_rejected", error=exc.message)
        return _error(status.HTTP_400_BAD_REQUEST, exc.message)

    if event.capture is None:
        logger.info("razorpay_webhook_ignored", event_type=event.event_type)
        return WebhookAck()

    try:
        application = await LedgerService(db).apply_payment(event.capture)
    except Exception as exc:
        metrics.record_payment("failed")
        metrics.record_error(type(exc).__name__, "razorpay_webhook")
        logger.error(
            "razorpay_webhook_failed",
            payment_id=event.capture.payment_id,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))

    if application.duplicate:
        metrics.record_payment("duplicate")
    elif application.applied:
        metrics.record_payment("credited")
    else:
        metrics.record_payment("unmatched")

    return WebhookAck()


# =============================================================================
# Users and galleries
# =============================================================================


@router.get("/user", response_model=UserResponse | None, responses=ERROR_RESPONSES)
async def get_user(
    email: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
) -> UserResponse | JSONResponse | None:
    """Credit balance for an email; null when the user does not exist."""
    try:
        address = _require_email(email)
    except ClientInputError as exc:
        return _error(status.HTTP_400_BAD_REQUEST, exc.message)

    user = await LedgerService(db).get_user(address)
    if user is None:
        return None

    return UserResponse(email=user.email, credits=user.credits, created_at=user.created_at)


@router.get("/gallery", response_model=list[GenerationItem])
async def gallery(db: AsyncSession = Depends(get_db)) -> list[GenerationItem]:
    """All generations, newest first."""
    generations = await LedgerService(db).list_generations()
    return [_to_item(g) for g in generations]


@router.get("/my-gallery", response_model=list[GenerationItem], responses=ERROR_RESPONSES)
async def my_gallery(
    email: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
) -> list[GenerationItem] | JSONResponse:
    """Generations for one user, newest first; empty for unknown emails."""
    try:
        address = _require_email(email)
    except ClientInputError as exc:
        return _error(status.HTTP_400_BAD_REQUEST, exc.message)

    generations = await LedgerService(db).list_generations_for_email(address)
    return [_to_item(g) for g in generations]
