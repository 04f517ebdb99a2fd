"""
Generation Workflow - Credit-metered portrait generation.

resolve user -> authorize -> build prompt -> enhance prompt -> render image
-> upload blob -> debit + record (one transaction) -> respond

Quota exhaustion at the provider turns into an uncharged demo response.
"""

import random

from structlog import get_logger

from aniverse.exceptions import InsufficientCreditsError, ProviderQuotaError, StorageError
from aniverse.models.domain import GeneratedImage, GenerationOutcome, GenerationRequest, UserData
from aniverse.observability.metrics import metrics
from aniverse.observability.tracing import get_tracer, set_span_error
from aniverse.services.ai_provider import AIProvider
from aniverse.services.ledger import LedgerService
from aniverse.services.prompt_builder import build_prompt
from aniverse.services.storage import BlobStore, object_name_for

logger = get_logger(__name__)
tracer = get_tracer(__name__)

STORED_CONTENT_TYPE = "image/jpeg"


class GenerationWorkflow:
    """
    One generation request end to end.

    Collaborators are injected; the AI and storage clients are process-wide
    singletons while the ledger is bound to the request's database session.
    """

    def __init__(
        self,
        ledger: LedgerService,
        ai_provider: AIProvider,
        storage: BlobStore,
        demo_image_url: str,
        rng: random.Random | None = None,
    ) -> None:
        self.ledger = ledger
        self.ai_provider = ai_provider
        self.storage = storage
        self.demo_image_url = demo_image_url
        self.rng = rng

    async def run(self, request: GenerationRequest) -> GenerationOutcome:
        """
        Execute the workflow.

        Raises:
            InsufficientCreditsError: User has no credits (nothing is charged)
            ProviderError / StorageError / database errors: Unexpected failure
        """
        user: UserData | None = None

        with tracer.start_as_current_span("generate_portrait") as span:
            span.set_attribute("generation.style", request.style)
            try:
                user = await self.ledger.get_or_create_user(request.email)

                if user.credits <= 0:
                    raise InsufficientCreditsError(user.user_id, user.credits)

                prompt = build_prompt(request.name, request.role, request.style, rng=self.rng)
                refined_prompt = await self.ai_provider.enhance_prompt(prompt)
                image = await self.ai_provider.generate_image(
                    refined_prompt, request.image_bytes, request.mime_type
                )

                outcome = await self._persist(user, request, image)

            except InsufficientCreditsError as exc:
                metrics.record_generation("denied")
                logger.info("generation_denied", user_id=str(exc.user_id), credits=exc.balance)
                raise

            except ProviderQuotaError as exc:
                metrics.record_generation("demo")
                logger.warning("generation_demo_fallback", stage=exc.stage, error=exc.message)
                return GenerationOutcome(
                    image_url=self.demo_image_url,
                    remaining_credits=user.credits if user else 0,
                    demo=True,
                )

            except Exception as exc:
                metrics.record_generation("error")
                metrics.record_error(type(exc).__name__, "generation")
                set_span_error(span, exc)
                logger.error("generation_failed", error=str(exc), error_type=type(exc).__name__)
                raise

        metrics.record_generation("success")
        logger.info(
            "generation_completed",
            user_id=str(user.user_id),
            image_url=outcome.image_url,
            remaining_credits=outcome.remaining_credits,
        )
        return outcome

    async def _persist(
        self, user: UserData, request: GenerationRequest, image: GeneratedImage
    ) -> GenerationOutcome:
        """Upload the image, then commit debit and ledger rows together."""
        object_name = object_name_for()
        await self.storage.upload(object_name, image.data, STORED_CONTENT_TYPE)
        image_url = self.storage.public_url(object_name)

        try:
            _, remaining = await self.ledger.record_generation(
                user_id=user.user_id,
                style=request.style,
                role=request.role,
                image_url=image_url,
            )
        except Exception as exc:
            logger.error(
                "orphaned_blob_candidate",
                object_name=object_name,
                user_id=str(user.user_id),
                error=str(exc),
            )
            await self._discard(object_name)
            raise

        return GenerationOutcome(image_url=image_url, remaining_credits=remaining)

    async def _discard(self, object_name: str) -> None:
        try:
            await self.storage.remove(object_name)
        except StorageError as exc:
            # Left for offline reconciliation; the original error wins
            logger.error("orphaned_blob_retained", object_name=object_name, error=exc.message)
