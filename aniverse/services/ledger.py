"""
Ledger Service - Users, generations, credit logs and payments.

Every credit mutation is a single conditional UPDATE executed in the same
transaction as its audit rows, so balances never drift from the log.
"""

from datetime import UTC, datetime
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from aniverse.config import settings
from aniverse.db.models import CreditLog, Generation, Payment, User
from aniverse.exceptions import InsufficientCreditsError, WriteVerificationError
from aniverse.models.domain import (
    GenerationData,
    PaymentApplication,
    PaymentCapture,
    UserData,
)
from aniverse.observability.metrics import metrics

logger = get_logger(__name__)

GENERATION_REASON = "image_generation"
PAYMENT_REASON = "payment"


def _utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


class LedgerService:
    """
    Ledger operations over one database session.

    Write operations commit on success and roll back on failure; callers
    never see a half-applied debit.
    """

    def __init__(self, session: AsyncSession, signup_credits: int | None = None) -> None:
        self.session = session
        self.signup_credits = (
            settings.signup_credits if signup_credits is None else signup_credits
        )

    async def get_or_create_user(self, email: str) -> UserData:
        """
        Return the user for an email, creating it with the signup grant.

        Uses INSERT ... ON CONFLICT DO NOTHING so two concurrent first
        requests for the same email resolve to the same row. The insert and
        the read-back share one transaction, closed before returning, so no
        connection stays idle in a transaction during provider calls.
        """
        stmt = (
            pg_insert(User)
            .values(id=uuid4(), email=email, credits=self.signup_credits, created_at=_utc_now())
            .on_conflict_do_nothing(constraint="uq_users_email")
            .returning(User.id)
        )
        result = await self.session.execute(stmt)
        created_id = result.scalar_one_or_none()

        user = await self._find_user_by_email(email)
        if user is None:
            await self.session.rollback()
            raise WriteVerificationError(f"User {email} not found after upsert")

        user_data = self._user_to_domain(user)
        await self.session.commit()

        if created_id is not None:
            logger.info("user_created", user_id=str(user_data.user_id), credits=user_data.credits)
            metrics.record_credit_grant("signup", self.signup_credits)

        return user_data

    async def get_user(self, email: str) -> UserData | None:
        """Look up a user by email without side effects."""
        user = await self._find_user_by_email(email)
        return self._user_to_domain(user) if user else None

    async def record_generation(
        self,
        user_id: UUID,
        style: str,
        role: str,
        image_url: str,
    ) -> tuple[GenerationData, int]:
        """
        Debit one credit and persist the generation in one transaction.

        Returns:
            The stored generation and the balance after the debit

        Raises:
            InsufficientCreditsError: Balance reached zero before the debit
        """
        stmt = (
            update(User)
            .where(User.id == user_id, User.credits > 0)
            .values(credits=User.credits - 1)
            .returning(User.credits)
        )
        result = await self.session.execute(stmt)
        remaining = result.scalar_one_or_none()

        if remaining is None:
            await self.session.rollback()
            logger.warning("credit_debit_rejected", user_id=str(user_id))
            raise InsufficientCreditsError(user_id, 0)

        generation = Generation(
            id=uuid4(),
            user_id=user_id,
            style=style,
            role=role,
            image_url=image_url,
            created_at=_utc_now(),
        )
        self.session.add(generation)
        self.session.add(
            CreditLog(
                id=uuid4(),
                user_id=user_id,
                change=-1,
                reason=GENERATION_REASON,
                created_at=_utc_now(),
            )
        )

        try:
            await self.session.flush()
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        metrics.record_credit_debit()
        logger.info(
            "credits_debited",
            user_id=str(user_id),
            generation_id=str(generation.id),
            remaining_credits=remaining,
        )
        return self._generation_to_domain(generation), remaining

    async def apply_payment(self, capture: PaymentCapture) -> PaymentApplication:
        """
        Credit a user for a captured payment.

        Unknown payers are dropped; a payment id seen before is acknowledged
        without crediting again.
        """
        credits_added = capture.credits_added

        user = await self._find_user_by_email(capture.email) if capture.email else None
        if user is None:
            logger.warning(
                "payment_user_not_found",
                payment_id=capture.payment_id,
                email=capture.email,
            )
            return PaymentApplication(
                payment_id=capture.payment_id,
                user_id=None,
                credits_added=0,
                balance_after=None,
            )

        existing = await self._find_payment(capture.provider, capture.payment_id)
        if existing is not None:
            logger.info("payment_already_recorded", payment_id=capture.payment_id)
            return PaymentApplication(
                payment_id=capture.payment_id,
                user_id=user.id,
                credits_added=0,
                balance_after=None,
                duplicate=True,
            )

        self.session.add(
            Payment(
                id=uuid4(),
                user_id=user.id,
                payment_id=capture.payment_id,
                amount=capture.amount_minor,
                currency=capture.currency,
                provider=capture.provider,
                credits_added=credits_added,
                status="success",
                created_at=_utc_now(),
            )
        )

        balance_after = user.credits
        if credits_added > 0:
            stmt = (
                update(User)
                .where(User.id == user.id)
                .values(credits=User.credits + credits_added)
                .returning(User.credits)
            )
            result = await self.session.execute(stmt)
            balance_after = result.scalar_one()
            self.session.add(
                CreditLog(
                    id=uuid4(),
                    user_id=user.id,
                    change=credits_added,
                    reason=PAYMENT_REASON,
                    created_at=_utc_now(),
                )
            )

        try:
            await self.session.flush()
            await self.session.commit()
        except IntegrityError as e:
            # Concurrent delivery of the same payment won the unique constraint
            await self.session.rollback()
            logger.warning(
                "payment_integrity_error", payment_id=capture.payment_id, error=str(e)
            )
            return PaymentApplication(
                payment_id=capture.payment_id,
                user_id=user.id,
                credits_added=0,
                balance_after=None,
                duplicate=True,
            )

        metrics.record_credit_grant(PAYMENT_REASON, credits_added)
        logger.info(
            "payment_credited",
            payment_id=capture.payment_id,
            user_id=str(user.id),
            credits_added=credits_added,
            balance_after=balance_after,
        )
        return PaymentApplication(
            payment_id=capture.payment_id,
            user_id=user.id,
            credits_added=credits_added,
            balance_after=balance_after,
        )

    async def list_generations(self) -> list[GenerationData]:
        """All generations, newest first."""
        stmt = select(Generation).order_by(Generation.created_at.desc())
        result = await self.session.execute(stmt)
        return [self._generation_to_domain(g) for g in result.scalars().all()]

    async def list_generations_for_email(self, email: str) -> list[GenerationData]:
        """Generations owned by the user with this email, newest first."""
        stmt = (
            select(Generation)
            .join(User, Generation.user_id == User.id)
            .where(User.email == email)
            .order_by(Generation.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return [self._generation_to_domain(g) for g in result.scalars().all()]

    # ========================================================================
    # Private Helper Methods
    # ========================================================================

    async def _find_user_by_email(self, email: str) -> User | None:
        stmt = select(User).where(User.email == email)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def _find_payment(self, provider: str, payment_id: str) -> Payment | None:
        stmt = select(Payment).where(
            Payment.provider == provider,
            Payment.payment_id == payment_id,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    def _user_to_domain(self, user: User) -> UserData:
        return UserData(
            user_id=user.id,
            email=user.email,
            credits=user.credits,
            created_at=user.created_at,
        )

    def _generation_to_domain(self, generation: Generation) -> GenerationData:
        return GenerationData(
            generation_id=generation.id,
            user_id=generation.user_id,
            style=generation.style,
            role=generation.role,
            image_url=generation.image_url,
            created_at=generation.created_at,
        )
