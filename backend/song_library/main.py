"""
Song Library API - Main Application
===================================
FastAPI application entry point with lifecycle management.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from song_library.core.config import settings
from song_library.core.exceptions import register_exception_handlers
from song_library.core.logging_config import setup_logging, get_logger
from song_library.api.dependencies import RequestLoggingMiddleware, build_library_service
from song_library.api.routes import folders, health, library
from song_library.services.cache import redis_manager


logger = get_logger(__name__)


# ============================================================================
# APPLICATION LIFESPAN MANAGEMENT
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application Lifespan Manager

    Builds the library service (unless one was installed already, as tests
    do) and connects Redis when enabled. Storage is authorized lazily on the
    first request, so bad keys never stop startup.
    """
    setup_logging()

    logger.info("=" * 70)
    logger.info(f"🚀 Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    logger.info("=" * 70)
    logger.info(f"📋 Environment: {settings.ENVIRONMENT}")
    logger.info(f"🌐 API Host: {settings.API_HOST}:{settings.API_PORT}")
    logger.info(f"🔐 CORS Allowed Origins: {settings.CORS_ORIGINS}")
    logger.info(f"🗄️ Storage backend: {settings.STORAGE_BACKEND} (configured: {settings.storage_configured})")
    logger.info(f"   Listing cache: {'ENABLED' if settings.caching_enabled else 'DISABLED'}")

    owns_service = getattr(app.state, "library_service", None) is None
    if owns_service:
        app.state.library_service = build_library_service(settings)

    if settings.REDIS_ENABLE:
        await redis_manager.connect()
    else:
        logger.info("ℹ️ Redis is disabled")

    logger.info("✅ Application startup complete")

    yield

    logger.info("🛑 Shutting down application...")

    if owns_service:
        try:
            await app.state.library_service.backend.close()
        except Exception:
            logger.exception("⚠️ Error while closing storage backend")
        app.state.library_service = None

    if settings.REDIS_ENABLE:
        try:
            await redis_manager.disconnect()
        except Exception:
            logger.exception("⚠️ Error while closing Redis connection")

    logger.info("✅ Shutdown complete")


# ============================================================================
# FASTAPI APPLICATION
# ============================================================================

def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        description="Song library over an object storage bucket",
        version=settings.APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
        license_info={"name": "MIT"},
        openapi_tags=[
            {"name": "health", "description": "Health check and system status endpoints"},
            {"name": "folders", "description": "Folder (genre) listing and management"},
            {"name": "songs", "description": "Song listing, search, streaming, upload and delete"},
        ],
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Process-Time"],
        max_age=600,
    )
    app.add_middleware(RequestLoggingMiddleware)

    register_exception_handlers(app)

    app.include_router(health.router, prefix=settings.API_PREFIX, tags=["health"])
    app.include_router(folders.router, prefix=settings.API_PREFIX, tags=["folders"])
    app.include_router(library.router, prefix=settings.API_PREFIX, tags=["songs"])

    @app.get("/", summary="Root endpoint", tags=["health"])
    async def root():
        return {
            "name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
            "storage": settings.STORAGE_BACKEND,
            "status": "operational",
            "docs": "/docs",
        }

    return app


app = create_app()


if __name__ == "__main__":
    from song_library.core.server_config import run

    run()
