import uuid
from typing import Any

from fastapi import APIRouter, Depends, Path
from fastapi_pagination import Page
from fastapi_pagination.ext.sqlalchemy import apaginate
from sqlalchemy.ext.asyncio import AsyncSession

from sinhala_scribe.api.deps import get_current_user
from sinhala_scribe.core.exceptions import NotFoundException
from sinhala_scribe.crud.crud_transcription import transcription_crud
from sinhala_scribe.db.session import get_db
from sinhala_scribe.models.models import Profile
from sinhala_scribe.schemas.transcription import DeleteResponse, TranscriptionOut

router = APIRouter()


@router.get("/", response_model=Page[TranscriptionOut])
async def list_transcriptions(
        current_user: Profile = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
) -> Any:
    """
    List the current user's transcripts, newest first.
    """
    return await apaginate(db, transcription_crud.list_query_for_user(user_id=current_user.id))


@router.delete("/{transcription_id}", response_model=DeleteResponse)
async def delete_transcription(
        transcription_id: uuid.UUID = Path(..., description="Transcription ID"),
        current_user: Profile = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Delete one of the current user's transcripts.
    """
    deleted = await transcription_crud.remove_for_user(db, id=transcription_id, user_id=current_user.id)
    if not deleted:
        raise NotFoundException("Transcription not found")
    return DeleteResponse(success=True)
