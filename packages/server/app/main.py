"""
RockImages API Server

Entry point for the FastAPI application.
"""

from contextlib import asynccontextmanager
from pathlib import Path

import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_session
from app.core.errors import CatalogError, ValidationError
from app.core.logging import configure_logging
from app.core.middleware import CSRFMiddleware, SecurityHeadersMiddleware
from app.core.transcoding import get_transcoder
from app.api.v1 import router as api_v1_router
from app.tasks.previews import get_preview_queue

settings = get_settings()
log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    log.info("RockImages starting", media_root=settings.media_root, previews=settings.preview_queue)
    await get_transcoder().ensure_placeholders()
    yield
    log.info("RockImages shutting down")
    await get_preview_queue().drain()


async def catalog_error_handler(request: Request, exc: CatalogError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error("request.failed", path=request.url.path, code=exc.code, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    err = ValidationError("Invalid request.", {"errors": jsonable_encoder(exc.errors())})
    return JSONResponse(status_code=err.status_code, content=err.to_dict())


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    configure_logging(settings.log_level, settings.log_format)

    public_media_prefix = f"{settings.media_url_prefix.rstrip('/')}/{settings.media_public_namespace}"

    app = FastAPI(
        title="RockImages",
        description="Multi-tenant media catalog with org roles, tags and search.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Each add_middleware wraps the previous ones, so CORS ends up outermost
    app.add_middleware(SecurityHeadersMiddleware, public_media_prefix=public_media_prefix)
    app.add_middleware(CSRFMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "X-CSRF-Token"],
    )

    app.add_exception_handler(CatalogError, catalog_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    # API routes
    app.include_router(api_v1_router, prefix=settings.api_prefix)

    # Shared placeholders only; originals and previews are served by the
    # access-checked /files/{id}/download and /files/{id}/preview endpoints
    public_dir = Path(settings.media_root) / settings.media_public_namespace
    public_dir.mkdir(parents=True, exist_ok=True)
    app.mount(
        public_media_prefix,
        StaticFiles(directory=public_dir, check_dir=False),
        name="media",
    )

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for liveness probes."""
        return {"status": "ok"}

    @app.get("/ready", tags=["System"])
    async def readiness_check(session: AsyncSession = Depends(get_session)):
        """Readiness check endpoint for startup probes."""
        try:
            await session.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            log.warning("ready.database_unavailable", error=str(exc))
            return JSONResponse(status_code=503, content={"status": "unavailable"})
        return {"status": "ready"}

    return app


app = create_app()
