import uuid
from typing import Annotated, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from sinhala_scribe.core.config import settings
from sinhala_scribe.core.exceptions import CredentialsException
from sinhala_scribe.crud.crud_profile import profile_crud
from sinhala_scribe.db.session import get_db
from sinhala_scribe.models.models import Profile
from sinhala_scribe.services.chunk_service import ChunkTranscriptionService
from sinhala_scribe.services.transcription_provider import get_transcription_provider

bearer_scheme = HTTPBearer(auto_error=False)


def decode_access_token(token: str) -> dict:
    """
    Verify a bearer token minted by the identity provider.

    Raises:
        CredentialsException: If the token is invalid or has no subject
    """
    options = {"verify_aud": settings.JWT_AUDIENCE is not None}
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            options=options,
        )
    except JWTError as e:
        logger.debug(f"Rejected bearer token: {e}")
        raise CredentialsException()

    if not payload.get("sub"):
        raise CredentialsException()
    return payload


async def get_current_user(
        credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
        db: AsyncSession = Depends(get_db),
) -> Profile:
    """
    Dependency for getting the profile of the authenticated caller.

    Raises:
        CredentialsException: If the token is missing or invalid
    """
    if credentials is None:
        raise CredentialsException("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    try:
        user_id = uuid.UUID(str(payload["sub"]))
    except ValueError:
        raise CredentialsException()

    return await profile_crud.get_or_create(db, user_id=user_id, email=payload.get("email"))


def get_chunk_service() -> ChunkTranscriptionService:
    """Dependency for the per-chunk metering service"""
    return ChunkTranscriptionService(get_transcription_provider())
