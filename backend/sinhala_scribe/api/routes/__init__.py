from fastapi import APIRouter

from sinhala_scribe.api.routes import credits, transcribe, transcriptions

# Create main API router
api_router = APIRouter()

# Include all route modules
api_router.include_router(transcribe.router, prefix="/transcribe", tags=["transcribe"])
api_router.include_router(transcriptions.router, prefix="/transcriptions", tags=["transcriptions"])
api_router.include_router(credits.router, prefix="/credits", tags=["credits"])
