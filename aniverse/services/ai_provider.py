"""
Generative AI Provider - Gemini text and image models.

Two calls per generation: prompt enhancement on the text model, then image
synthesis on the image model with the uploaded portrait attached inline.
"""

import asyncio
import base64
import time
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, TypeVar

from google import genai
from google.genai import errors as genai_errors
from google.genai import types
from structlog import get_logger

from aniverse.exceptions import ProviderError, ProviderQuotaError, ProviderTimeoutError
from aniverse.models.domain import GeneratedImage
from aniverse.observability.metrics import metrics

logger = get_logger(__name__)

T = TypeVar("T")

TEXT_STAGE = "text_enhancement"
IMAGE_STAGE = "image_generation"

# Only consulted for errors that carry no status code
QUOTA_MARKERS = ("Quota", "429")


class AIProvider(Protocol):
    """Interface the generation workflow depends on."""

    async def enhance_prompt(self, prompt: str) -> str: ...

    async def generate_image(
        self, prompt: str, image_bytes: bytes, mime_type: str
    ) -> GeneratedImage: ...


def is_quota_error(exc: BaseException) -> bool:
    """Classify an exception as quota exhaustion / rate limiting."""
    if isinstance(exc, genai_errors.APIError):
        return exc.code == 429 or exc.status == "RESOURCE_EXHAUSTED"
    message = str(exc)
    return any(marker in message for marker in QUOTA_MARKERS)


def extract_image(response: Any) -> GeneratedImage:
    """
    Pull the first inline image out of a generate_content response.

    Raises:
        ProviderError: Response carries no image part
    """
    for candidate in response.candidates or []:
        content = candidate.content
        if content is None:
            continue
        for part in content.parts or []:
            inline = part.inline_data
            if inline is None or not inline.data:
                continue
            data = inline.data
            if isinstance(data, str):
                data = base64.b64decode(data)
            return GeneratedImage(data=data, mime_type=inline.mime_type or "image/jpeg")

    raise ProviderError(IMAGE_STAGE, "No image in response")


class GeminiProvider:
    """
    Gemini implementation of AIProvider.

    The underlying client is created once and shared by every request.
    """

    def __init__(
        self,
        api_key: str,
        text_model: str,
        image_model: str,
        timeout_seconds: float,
        client: genai.Client | None = None,
    ) -> None:
        self.api_key = api_key
        self.text_model = text_model
        self.image_model = image_model
        self.timeout_seconds = timeout_seconds
        self._client = client

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    async def enhance_prompt(self, prompt: str) -> str:
        """Ask the text model to refine the instruction prompt."""
        response = await self._call(
            TEXT_STAGE,
            lambda: self.client.aio.models.generate_content(
                model=self.text_model,
                contents=prompt,
            ),
        )
        text = response.text
        if not text:
            raise ProviderError(TEXT_STAGE, "Empty response from text model")
        return text

    async def generate_image(
        self, prompt: str, image_bytes: bytes, mime_type: str
    ) -> GeneratedImage:
        """Render the refined prompt against the uploaded portrait."""
        response = await self._call(
            IMAGE_STAGE,
            lambda: self.client.aio.models.generate_content(
                model=self.image_model,
                contents=[prompt, types.Part.from_bytes(data=image_bytes, mime_type=mime_type)],
                config=types.GenerateContentConfig(response_modalities=["TEXT", "IMAGE"]),
            ),
        )
        return extract_image(response)

    async def _call(self, stage: str, request: Callable[[], Awaitable[T]]) -> T:
        """Run one provider call under the deadline and classify failures."""
        start = time.monotonic()
        try:
            return await asyncio.wait_for(request(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as exc:
            logger.error("provider_call_timed_out", stage=stage, timeout=self.timeout_seconds)
            raise ProviderTimeoutError(stage, self.timeout_seconds) from exc
        except Exception as exc:
            if is_quota_error(exc):
                logger.warning("provider_quota_exhausted", stage=stage, error=str(exc))
                raise ProviderQuotaError(stage, str(exc)) from exc
            logger.error(
                "provider_call_failed",
                stage=stage,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise ProviderError(stage, str(exc)) from exc
        finally:
            metrics.record_provider_call(stage, time.monotonic() - start)
