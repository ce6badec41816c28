"""
FastAPI application factory.

``create_app()`` assembles the application with CORS, error handlers,
cron auth, routers, and the health endpoint. The module-level ``app``
instance allows ``uvicorn meetnotes.api.app:app --reload``.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from meetnotes import __version__
from meetnotes.api import websocket
from meetnotes.api.middleware.cron_auth import CronAuthMiddleware
from meetnotes.api.middleware.error_handler import register_error_handlers
from meetnotes.api.routes import cron, pipeline, recordings, storage
from meetnotes.core.config import Settings, get_settings
from meetnotes.core.models import HealthResponse
from meetnotes.services.container import Services, build_services

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    """Build and return a fully configured FastAPI application.

    Args:
        settings: Settings to use; defaults to ``get_settings()``.
        services: Prebuilt services (tests). When omitted they are built
            from ``settings`` at startup and closed at shutdown.
    """
    settings = settings or (services.settings if services else get_settings())
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owned = getattr(app.state, "services", None) is None
        if owned:
            app.state.services = build_services(settings)
        await app.state.services.database.init()
        logger.info("meetnotes %s started", __version__)
        try:
            yield
        finally:
            if owned:
                await app.state.services.aclose()
                app.state.services = None

    app = FastAPI(
        title="meetnotes",
        description="Meeting recording upload, transcription and summarization.",
        version=__version__,
        lifespan=lifespan,
    )
    if services is not None:
        app.state.services = services

    # -- CORS --
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -- Cron auth (no-op when cron_secret is empty) --
    app.add_middleware(CronAuthMiddleware, secret=settings.cron_secret)

    # -- Error handlers --
    register_error_handlers(app)

    # -- Health check (root-level, not under /api/v1) --
    @app.get("/health", response_model=HealthResponse, tags=["system"])
    async def health() -> HealthResponse:
        return HealthResponse(version=__version__, timestamp=datetime.now(UTC))

    # -- REST routes --
    app.include_router(recordings.router, prefix="/api/v1")
    app.include_router(pipeline.router, prefix="/api/v1")
    app.include_router(cron.router, prefix="/api/v1")
    app.include_router(storage.router)

    # -- WebSocket --
    app.include_router(websocket.router)

    return app


app = create_app()
