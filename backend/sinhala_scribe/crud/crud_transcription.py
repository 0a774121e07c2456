from typing import Optional
from uuid import UUID

from loguru import logger
from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from sinhala_scribe.core.exceptions import DatabaseError
from sinhala_scribe.crud.base import CRUDBase
from sinhala_scribe.models.models import Transcription


class CRUDTranscription(CRUDBase[Transcription]):
    """CRUD operations for stored transcripts"""

    async def create_for_user(
            self,
            db: AsyncSession,
            *,
            user_id: UUID,
            text: str,
            duration_seconds: float,
            credits_used: int,
            is_partial: bool,
            title: Optional[str] = None,
    ) -> Transcription:
        """Persist one finished transcript"""
        transcription = await self.create(db, obj_in={
            "user_id": user_id,
            "title": title,
            "transcription_text": text,
            "audio_duration_seconds": round(duration_seconds),
            "credits_used": credits_used,
            "is_partial": is_partial,
        })
        try:
            await db.commit()
        except Exception as e:
            await db.rollback()
            logger.error(f"Error saving transcription for {user_id}: {e}")
            raise DatabaseError("Error saving Transcription")
        return transcription

    def list_query_for_user(self, *, user_id: UUID) -> Select:
        """Newest-first query of a user's transcripts, for pagination"""
        return (
            select(Transcription)
            .where(Transcription.user_id == user_id)
            .order_by(Transcription.created_at.desc(), Transcription.id)
        )

    async def remove_for_user(self, db: AsyncSession, *, id: UUID, user_id: UUID) -> bool:
        """Delete a transcript only if it belongs to the user"""
        deleted = await self.remove_by_condition(
            db, condition=(Transcription.id == id) & (Transcription.user_id == user_id)
        )
        await db.commit()
        return deleted > 0


transcription_crud = CRUDTranscription(Transcription)
