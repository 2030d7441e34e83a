from __future__ import annotations

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.evidence.api.v1.routes_media_files import router as media_files_router_v1
from src.evidence.api.v1.routes_retention import router as retention_router_v1
from src.evidence.api.v1.routes_system import router as system_router_v1
from src.evidence.config import settings
from src.evidence.container import ServiceContainer, build_container
from src.evidence.logging_config import setup_logging


def create_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    """Build the API application.

    When no container is supplied, one is built from settings at startup.
    """

    app = FastAPI(title="Evidence Transcription API")
    app.state.container = container

    @app.on_event("startup")
    async def on_startup() -> None:
        setup_logging(settings.log_level, settings.log_json)
        if app.state.container is None:
            # Picks up USE_SQL_REPOS / STORAGE_BACKEND / SPEECH_BACKEND.
            app.state.container = build_container()

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        if app.state.container is not None:
            app.state.container.close()

    # CORS configuration – permissive by default for development. Tighten via
    # CORS_ALLOW_ORIGINS in production deployments.
    allow_origins = [origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()] or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", tags=["system"])
    async def health_check() -> dict:
        """Basic liveness check for the API root."""
        return {"status": "ok"}

    # Versioned API routers
    app.include_router(system_router_v1, prefix="/api/v1")
    app.include_router(media_files_router_v1, prefix="/api/v1")
    app.include_router(retention_router_v1, prefix="/api/v1")

    return app


app = create_app()
