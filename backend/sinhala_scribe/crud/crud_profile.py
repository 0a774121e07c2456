from typing import Optional
from uuid import UUID

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from sinhala_scribe.core.config import settings
from sinhala_scribe.core.exceptions import DatabaseError
from sinhala_scribe.crud.base import CRUDBase
from sinhala_scribe.models.models import CreditTransaction, CreditTransactionType, Profile
from sinhala_scribe.schemas.credit import DeductCreditResult


class CRUDProfile(CRUDBase[Profile]):
    """CRUD operations for billing profiles and their credit ledger"""

    async def get_or_create(
            self, db: AsyncSession, *, user_id: UUID, email: Optional[str] = None
    ) -> Profile:
        """
        Get the profile for an identity, creating it with the signup bonus on first sight.
        """
        profile = await self.get(db, id=user_id)
        if profile:
            return profile

        try:
            profile = Profile(id=user_id, email=email, credits=settings.FREE_CREDITS)
            db.add(profile)
            await db.flush()
            db.add(CreditTransaction(
                user_id=user_id,
                amount=settings.FREE_CREDITS,
                type=CreditTransactionType.SIGNUP_BONUS,
                balance_after=settings.FREE_CREDITS,
                description="Signup bonus",
            ))
            await db.commit()
            logger.info(f"Created profile {user_id} with {settings.FREE_CREDITS} free credits")
            return profile
        except IntegrityError:
            # A concurrent request created it first
            await db.rollback()
            profile = await self.get(db, id=user_id)
            if profile is None:
                raise DatabaseError("Error creating Profile")
            return profile

    async def get_balance(self, db: AsyncSession, *, user_id: UUID) -> Optional[int]:
        """Read the current balance straight from the database"""
        result = await db.execute(select(Profile.credits).where(Profile.id == user_id))
        return result.scalar_one_or_none()

    async def deduct_credit(
            self, db: AsyncSession, *, user_id: UUID, description: Optional[str] = None
    ) -> DeductCreditResult:
        """
        Atomically take one credit, never going below zero.

        The floor check lives in the UPDATE's WHERE clause so concurrent
        deductions cannot overspend.
        """
        try:
            result = await db.execute(
                update(Profile)
                .where(Profile.id == user_id, Profile.credits >= 1)
                .values(credits=Profile.credits - 1)
            )
            if result.rowcount == 0:
                balance = await self.get_balance(db, user_id=user_id)
                return DeductCreditResult(
                    success=False,
                    remaining_credits=balance or 0,
                    error_message="Insufficient credits",
                )

            balance = await self.get_balance(db, user_id=user_id)
            db.add(CreditTransaction(
                user_id=user_id,
                amount=-1,
                type=CreditTransactionType.TRANSCRIPTION,
                balance_after=balance,
                description=description,
            ))
            await db.commit()
            return DeductCreditResult(success=True, remaining_credits=balance)
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Credit deduction failed for {user_id}: {e}")
            raise DatabaseError("Credit deduction failed")

    async def add_credits(
            self,
            db: AsyncSession,
            *,
            user_id: UUID,
            amount: int,
            description: Optional[str] = None,
    ) -> Profile:
        """Top up a profile and record the ledger row"""
        if amount <= 0:
            raise ValueError("amount must be positive")

        profile = await self.get(db, id=user_id)
        if not profile:
            raise ValueError(f"Profile {user_id} not found")

        try:
            profile.credits += amount
            db.add(CreditTransaction(
                user_id=user_id,
                amount=amount,
                type=CreditTransactionType.PURCHASE,
                balance_after=profile.credits,
                description=description,
            ))
            await db.commit()
            await db.refresh(profile)
            return profile
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Adding credits failed for {user_id}: {e}")
            raise DatabaseError("Adding credits failed")


profile_crud = CRUDProfile(Profile)
