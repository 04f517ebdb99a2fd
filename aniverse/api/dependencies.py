"""
FastAPI Dependencies - Process-wide provider clients.

Each client is constructed once on first use and shared by all requests;
tests replace them through app.dependency_overrides.
"""

from aniverse.config import settings
from aniverse.services.ai_provider import AIProvider, GeminiProvider
from aniverse.services.payment_provider import PaymentProvider
from aniverse.services.razorpay_provider import RazorpayProvider
from aniverse.services.storage import BlobStore, SupabaseStorage

_ai_provider: GeminiProvider | None = None
_storage: SupabaseStorage | None = None
_payment_provider: RazorpayProvider | None = None


def get_ai_provider() -> AIProvider:
    """Shared Gemini client."""
    global _ai_provider
    if _ai_provider is None:
        _ai_provider = GeminiProvider(
            api_key=settings.gemini_api_key,
            text_model=settings.text_model,
            image_model=settings.image_model,
            timeout_seconds=settings.provider_timeout_seconds,
        )
    return _ai_provider


def get_storage() -> BlobStore:
    """Shared Supabase Storage client."""
    global _storage
    if _storage is None:
        _storage = SupabaseStorage(
            base_url=settings.supabase_url,
            service_role_key=settings.supabase_service_role,
            bucket=settings.storage_bucket,
            timeout_seconds=settings.provider_timeout_seconds,
        )
    return _storage


def get_payment_provider() -> PaymentProvider:
    """Shared Razorpay client."""
    global _payment_provider
    if _payment_provider is None:
        _payment_provider = RazorpayProvider(
            key_id=settings.razorpay_key_id,
            key_secret=settings.razorpay_key_secret,
            webhook_secret=settings.razorpay_webhook_secret,
            currency=settings.order_currency,
            timeout_seconds=settings.provider_timeout_seconds,
        )
    return _payment_provider


async def close_providers() -> None:
    """Release HTTP connections held by the shared clients."""
    global _ai_provider, _storage, _payment_provider

    if _storage is not None:
        await _storage.close()
    if _payment_provider is not None:
        await _payment_provider.close()

    _ai_provider = None
    _storage = None
    _payment_provider = None
