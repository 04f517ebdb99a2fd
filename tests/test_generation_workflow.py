"""
Tests for GenerationWorkflow.

Ledger, AI provider and blob store are mocked; the workflow's ordering and
charging rules are what is under test.
"""

import random
from dataclasses import replace
from unittest.mock import AsyncMock, MagicMock

import pytest
from conftest import create_mock_user, make_result

from aniverse.exceptions import (
    InsufficientCreditsError,
    ProviderError,
    ProviderQuotaError,
    StorageError,
)
from aniverse.models.domain import GenerationData, GenerationRequest, UserData
from aniverse.services.generation import STORED_CONTENT_TYPE, GenerationWorkflow
from aniverse.services.ledger import LedgerService
from aniverse.services.prompt_builder import POWERS

DEMO_URL = "https://images.unsplash.com/demo"


@pytest.fixture
def request_() -> GenerationRequest:
    return GenerationRequest(
        email="kai@example.com",
        name="Kai",
        role="Sentinel",
        style="cyberpunk",
        image_bytes=b"\x89PNG",
        mime_type="image/png",
    )


@pytest.fixture
def ledger(user_data: UserData, generation_data: GenerationData) -> AsyncMock:
    mock = AsyncMock(spec=LedgerService)
    mock.get_or_create_user = AsyncMock(return_value=user_data)
    mock.record_generation = AsyncMock(return_value=(generation_data, user_data.credits - 1))
    return mock


def make_workflow(ledger, ai_provider, storage) -> GenerationWorkflow:
    return GenerationWorkflow(
        ledger=ledger,
        ai_provider=ai_provider,
        storage=storage,
        demo_image_url=DEMO_URL,
        rng=random.Random(0),
    )


class TestSuccess:
    async def test_new_user_first_generation(
        self,
        request_: GenerationRequest,
        ledger: AsyncMock,
        ai_provider: AsyncMock,
        storage: MagicMock,
    ):
        outcome = await make_workflow(ledger, ai_provider, storage).run(request_)

        assert outcome.demo is False
        assert outcome.remaining_credits == 1
        assert outcome.image_url.startswith(
            "https://project.supabase.co/storage/v1/object/public/aniverse-images/aniverse-"
        )
        ledger.get_or_create_user.assert_awaited_once_with("kai@example.com")

    async def test_prompt_built_from_request(
        self,
        request_: GenerationRequest,
        ledger: AsyncMock,
        ai_provider: AsyncMock,
        storage: MagicMock,
    ):
        await make_workflow(ledger, ai_provider, storage).run(request_)

        prompt = ai_provider.enhance_prompt.await_args.args[0]
        assert 'Display "Kai" as "Sentinel"' in prompt
        assert "cyberpunk" in prompt
        assert sum(power in prompt for power in POWERS) == 1

    async def test_refined_prompt_and_photo_sent_to_image_model(
        self,
        request_: GenerationRequest,
        ledger: AsyncMock,
        ai_provider: AsyncMock,
        storage: MagicMock,
    ):
        await make_workflow(ledger, ai_provider, storage).run(request_)

        ai_provider.generate_image.assert_awaited_once_with(
            "refined prompt", b"\x89PNG", "image/png"
        )

    async def test_upload_precedes_debit(
        self,
        request_: GenerationRequest,
        ledger: AsyncMock,
        ai_provider: AsyncMock,
        storage: MagicMock,
    ):
        await make_workflow(ledger, ai_provider, storage).run(request_)

        name, data, content_type = storage.upload.await_args.args
        assert name.startswith("aniverse-") and name.endswith(".jpg")
        assert data == b"\xff\xd8\xff\xe0jpeg"
        assert content_type == STORED_CONTENT_TYPE

        kwargs = ledger.record_generation.await_args.kwargs
        assert kwargs["style"] == "cyberpunk"
        assert kwargs["role"] == "Sentinel"
        assert kwargs["image_url"] == storage.public_url(name)


class TestConnectionUse:
    """No database transaction is open while the AI provider works."""

    async def test_committed_before_provider_calls(
        self,
        request_: GenerationRequest,
        db_session: AsyncMock,
        ai_provider: AsyncMock,
        storage: MagicMock,
    ):
        user = create_mock_user(credits=2)
        calls: list[str] = []
        results = iter(
            [make_result(scalar=user.id), make_result(scalar=user), make_result(scalar=1)]
        )

        async def execute(stmt):
            calls.append("execute")
            return next(results)

        async def commit():
            calls.append("commit")

        db_session.execute.side_effect = execute
        db_session.commit.side_effect = commit

        last_db_call: dict[str, str] = {}

        async def enhance(prompt: str) -> str:
            last_db_call["enhance_prompt"] = calls[-1]
            return "refined prompt"

        async def generate(prompt: str, image_bytes: bytes, mime_type: str):
            last_db_call["generate_image"] = calls[-1]
            return ai_provider.generate_image.return_value

        ai_provider.enhance_prompt.side_effect = enhance
        ai_provider.generate_image.side_effect = generate

        outcome = await make_workflow(LedgerService(db_session), ai_provider, storage).run(
            request_
        )

        assert outcome.remaining_credits == 1
        assert last_db_call == {"enhance_prompt": "commit", "generate_image": "commit"}
        assert calls == ["execute", "execute", "commit", "execute", "commit"]


class TestDenied:
    async def test_zero_credits_rejected_before_provider(
        self,
        request_: GenerationRequest,
        ledger: AsyncMock,
        user_data: UserData,
        ai_provider: AsyncMock,
        storage: MagicMock,
    ):
        ledger.get_or_create_user.return_value = replace(user_data, credits=0)

        with pytest.raises(InsufficientCreditsError):
            await make_workflow(ledger, ai_provider, storage).run(request_)

        ai_provider.enhance_prompt.assert_not_awaited()
        storage.upload.assert_not_awaited()
        ledger.record_generation.assert_not_awaited()

    async def test_debit_race_lost(
        self,
        request_: GenerationRequest,
        ledger: AsyncMock,
        ai_provider: AsyncMock,
        storage: MagicMock,
        user_data: UserData,
    ):
        ledger.record_generation.side_effect = InsufficientCreditsError(user_data.user_id, 0)

        with pytest.raises(InsufficientCreditsError):
            await make_workflow(ledger, ai_provider, storage).run(request_)

        # Uploaded blob is discarded
        storage.remove.assert_awaited_once()


class TestQuotaFallback:
    @pytest.mark.parametrize("stage", ["enhance_prompt", "generate_image"])
    async def test_quota_returns_demo_without_charge(
        self,
        stage: str,
        request_: GenerationRequest,
        ledger: AsyncMock,
        ai_provider: AsyncMock,
        storage: MagicMock,
    ):
        getattr(ai_provider, stage).side_effect = ProviderQuotaError(stage, "429 Quota exceeded")

        outcome = await make_workflow(ledger, ai_provider, storage).run(request_)

        assert outcome.demo is True
        assert outcome.image_url == DEMO_URL
        assert outcome.remaining_credits == 2
        ledger.record_generation.assert_not_awaited()
        storage.upload.assert_not_awaited()


class TestFailures:
    async def test_provider_failure_propagates_without_charge(
        self,
        request_: GenerationRequest,
        ledger: AsyncMock,
        ai_provider: AsyncMock,
        storage: MagicMock,
    ):
        ai_provider.generate_image.side_effect = ProviderError("image_generation", "No image")

        with pytest.raises(ProviderError):
            await make_workflow(ledger, ai_provider, storage).run(request_)

        ledger.record_generation.assert_not_awaited()

    async def test_upload_failure_propagates_without_charge(
        self,
        request_: GenerationRequest,
        ledger: AsyncMock,
        ai_provider: AsyncMock,
        storage: MagicMock,
    ):
        storage.upload.side_effect = StorageError("aniverse-1.jpg", "upload rejected with 409")

        with pytest.raises(StorageError):
            await make_workflow(ledger, ai_provider, storage).run(request_)

        ledger.record_generation.assert_not_awaited()
        storage.remove.assert_not_awaited()

    async def test_ledger_failure_discards_blob(
        self,
        request_: GenerationRequest,
        ledger: AsyncMock,
        ai_provider: AsyncMock,
        storage: MagicMock,
    ):
        ledger.record_generation.side_effect = RuntimeError("database unavailable")

        with pytest.raises(RuntimeError, match="database unavailable"):
            await make_workflow(ledger, ai_provider, storage).run(request_)

        uploaded_name = storage.upload.await_args.args[0]
        storage.remove.assert_awaited_once_with(uploaded_name)

    async def test_failed_discard_keeps_original_error(
        self,
        request_: GenerationRequest,
        ledger: AsyncMock,
        ai_provider: AsyncMock,
        storage: MagicMock,
    ):
        ledger.record_generation.side_effect = RuntimeError("database unavailable")
        storage.remove.side_effect = StorageError("aniverse-1.jpg", "remove failed")

        with pytest.raises(RuntimeError, match="database unavailable"):
            await make_workflow(ledger, ai_provider, storage).run(request_)
