"""
Tests for the Gemini provider.

The genai client is replaced by a MagicMock exposing aio.models.generate_content.
"""

import asyncio
import base64
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from google.genai import errors as genai_errors

from aniverse.exceptions import ProviderError, ProviderQuotaError, ProviderTimeoutError
from aniverse.services.ai_provider import (
    IMAGE_STAGE,
    TEXT_STAGE,
    GeminiProvider,
    extract_image,
    is_quota_error,
)


def image_response(data: bytes | str, mime_type: str = "image/png") -> SimpleNamespace:
    text_part = SimpleNamespace(inline_data=None, text="Here is your portrait")
    image_part = SimpleNamespace(inline_data=SimpleNamespace(data=data, mime_type=mime_type))
    return SimpleNamespace(
        candidates=[SimpleNamespace(content=SimpleNamespace(parts=[text_part, image_part]))]
    )


def make_provider(generate_content: AsyncMock, timeout_seconds: float = 5.0) -> GeminiProvider:
    client = MagicMock()
    client.aio.models.generate_content = generate_content
    return GeminiProvider(
        api_key="test",
        text_model="gemini-2.5-flash",
        image_model="gemini-2.5-flash-image",
        timeout_seconds=timeout_seconds,
        client=client,
    )


class TestIsQuotaError:
    def test_api_error_429(self):
        error = genai_errors.ClientError(
            429,
            {"error": {"code": 429, "message": "exhausted", "status": "RESOURCE_EXHAUSTED"}},
        )
        assert is_quota_error(error) is True

    def test_api_error_other_code(self):
        error = genai_errors.ClientError(
            400, {"error": {"code": 400, "message": "bad request", "status": "INVALID_ARGUMENT"}}
        )
        assert is_quota_error(error) is False

    @pytest.mark.parametrize("message", ["Quota exceeded for model", "HTTP 429 Too Many Requests"])
    def test_untyped_error_message_fallback(self, message: str):
        assert is_quota_error(RuntimeError(message)) is True

    def test_unrelated_error(self):
        assert is_quota_error(RuntimeError("connection reset")) is False


class TestExtractImage:
    def test_first_inline_image(self):
        image = extract_image(image_response(b"\x89PNGdata"))
        assert image.data == b"\x89PNGdata"
        assert image.mime_type == "image/png"

    def test_base64_string_decoded(self):
        encoded = base64.b64encode(b"jpeg-bytes").decode()
        image = extract_image(image_response(encoded, "image/jpeg"))
        assert image.data == b"jpeg-bytes"

    def test_text_only_response(self):
        response = SimpleNamespace(
            candidates=[
                SimpleNamespace(
                    content=SimpleNamespace(parts=[SimpleNamespace(inline_data=None)])
                )
            ]
        )
        with pytest.raises(ProviderError) as exc_info:
            extract_image(response)
        assert exc_info.value.stage == IMAGE_STAGE

    def test_no_candidates(self):
        with pytest.raises(ProviderError):
            extract_image(SimpleNamespace(candidates=None))


class TestEnhancePrompt:
    async def test_returns_text(self):
        generate = AsyncMock(return_value=SimpleNamespace(text="refined prompt"))
        provider = make_provider(generate)

        assert await provider.enhance_prompt("raw prompt") == "refined prompt"
        generate.assert_awaited_once_with(model="gemini-2.5-flash", contents="raw prompt")

    async def test_empty_text_is_error(self):
        provider = make_provider(AsyncMock(return_value=SimpleNamespace(text=None)))

        with pytest.raises(ProviderError) as exc_info:
            await provider.enhance_prompt("raw prompt")
        assert exc_info.value.stage == TEXT_STAGE

    async def test_quota_message_classified(self):
        provider = make_provider(AsyncMock(side_effect=RuntimeError("429 Quota exceeded")))

        with pytest.raises(ProviderQuotaError) as exc_info:
            await provider.enhance_prompt("raw prompt")
        assert exc_info.value.stage == TEXT_STAGE

    async def test_other_failure_wrapped(self):
        provider = make_provider(AsyncMock(side_effect=RuntimeError("model not found")))

        with pytest.raises(ProviderError) as exc_info:
            await provider.enhance_prompt("raw prompt")
        assert not isinstance(exc_info.value, ProviderQuotaError)
        assert str(exc_info.value) == "text_enhancement failed: model not found"

    async def test_deadline_exceeded(self):
        async def slow(**kwargs):
            await asyncio.sleep(1)

        provider = make_provider(AsyncMock(side_effect=slow), timeout_seconds=0.01)

        with pytest.raises(ProviderTimeoutError) as exc_info:
            await provider.enhance_prompt("raw prompt")
        assert exc_info.value.timeout_seconds == 0.01


class TestGenerateImage:
    async def test_sends_prompt_and_inline_image(self):
        generate = AsyncMock(return_value=image_response(b"rendered", "image/png"))
        provider = make_provider(generate)

        image = await provider.generate_image("refined prompt", b"\x89PNG", "image/png")

        assert image.data == b"rendered"
        kwargs = generate.await_args.kwargs
        assert kwargs["model"] == "gemini-2.5-flash-image"
        assert kwargs["contents"][0] == "refined prompt"
        assert kwargs["config"].response_modalities == ["TEXT", "IMAGE"]

    async def test_typed_quota_error(self):
        error = genai_errors.ClientError(
            429, {"error": {"code": 429, "message": "exhausted", "status": "RESOURCE_EXHAUSTED"}}
        )
        provider = make_provider(AsyncMock(side_effect=error))

        with pytest.raises(ProviderQuotaError) as exc_info:
            await provider.generate_image("refined prompt", b"\x89PNG", "image/png")
        assert exc_info.value.stage == IMAGE_STAGE
