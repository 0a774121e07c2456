import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi_pagination import add_pagination
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from sinhala_scribe.api.routes import api_router
from sinhala_scribe.core.config import settings
from sinhala_scribe.core.exceptions import BaseAPIException
from sinhala_scribe.core.logging import setup_logging
from sinhala_scribe.db.init_db import init_db


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for logging all requests"""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        request_id = uuid.uuid4().hex[:12]
        request.state.request_id = request_id

        logger.info(f"Request {request_id}: {request.method} {request.url.path}")

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.time() - start_time
            logger.error(f"Error {request_id}: {str(e)} after {process_time:.3f}s")
            raise

        process_time = time.time() - start_time
        logger.info(f"Response {request_id}: {response.status_code} completed in {process_time:.3f}s")

        response.headers["X-Process-Time"] = f"{process_time:.3f}"
        response.headers["X-Request-ID"] = request_id
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI application.
    Handles startup and shutdown events.
    """
    await init_db()
    logger.info(
        f"Application startup complete in {settings.ENVIRONMENT} environment "
        f"(provider: {settings.TRANSCRIPTION_PROVIDER})"
    )
    yield
    logger.info("Application shutdown")


def create_app() -> FastAPI:
    """Build the FastAPI application"""
    setup_logging()

    application = FastAPI(
        title=settings.PROJECT_NAME,
        description="Sinhala speech-to-text with credit metering",
        version=settings.VERSION,
        lifespan=lifespan,
        **settings.docs_kwargs(),
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Process-Time", "X-Request-ID"],
        max_age=600,
    )
    application.add_middleware(RequestLoggingMiddleware)

    application.include_router(api_router, prefix=settings.API_V1_STR)
    add_pagination(application)

    @application.exception_handler(BaseAPIException)
    async def api_exception_handler(request: Request, exc: BaseAPIException):
        """Handle custom API exceptions"""
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "code": exc.code},
            headers=exc.headers or {},
        )

    @application.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "version": settings.VERSION,
            "environment": settings.ENVIRONMENT,
            "provider": settings.TRANSCRIPTION_PROVIDER,
            "timestamp": time.time(),
        }

    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("sinhala_scribe.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
