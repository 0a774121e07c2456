from typing import Any

from fastapi import APIRouter, Depends
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from sinhala_scribe.api.deps import get_chunk_service, get_current_user
from sinhala_scribe.crud.crud_transcription import transcription_crud
from sinhala_scribe.db.session import get_db
from sinhala_scribe.models.models import Profile
from sinhala_scribe.schemas.transcription import (
    AnalyzeRequest,
    AnalyzeResponse,
    ChunkTranscribeRequest,
    ChunkTranscribeResponse,
    SaveTranscriptRequest,
    SaveTranscriptResponse,
)
from sinhala_scribe.services.chunk_service import ChunkTranscriptionService

router = APIRouter()


@router.post("/analyze", response_model=AnalyzeResponse)
async def analyze_audio(
        body: AnalyzeRequest,
        current_user: Profile = Depends(get_current_user),
        service: ChunkTranscriptionService = Depends(get_chunk_service),
        db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Estimate the credits a recording needs against the current balance.
    """
    return await service.analyze(db, profile=current_user, duration_seconds=body.duration_seconds)


@router.post("/chunk", response_model=ChunkTranscribeResponse)
async def transcribe_chunk(
        body: ChunkTranscribeRequest,
        current_user: Profile = Depends(get_current_user),
        service: ChunkTranscriptionService = Depends(get_chunk_service),
        db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Transcribe one audio chunk and deduct one credit on success.

    Responds 402 when the balance cannot cover the chunk.
    """
    return await service.transcribe_chunk(db, profile=current_user, request=body)


@router.post("/save", response_model=SaveTranscriptResponse)
async def save_transcript(
        body: SaveTranscriptRequest,
        current_user: Profile = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Persist a finished or partial transcript.
    """
    transcription = await transcription_crud.create_for_user(
        db,
        user_id=current_user.id,
        text=body.text,
        duration_seconds=body.duration_seconds,
        credits_used=body.credits_used,
        is_partial=body.is_partial,
        title=body.title,
    )
    logger.info(
        f"Saved transcription {transcription.id} for {current_user.id} "
        f"({body.credits_used} credits, partial={body.is_partial})"
    )
    return SaveTranscriptResponse(transcription_id=transcription.id)
