"""GuildFlow FastAPI application factory."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from guildflow import __version__
from guildflow.service import GuildFlowService

from .routes import events, health, schedules

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from guildflow.config import Settings


def create_app(
    service: GuildFlowService | None = None,
    settings: Settings | None = None,
    *,
    enable_cors: bool = True,
    cors_origins: list[str] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    The service is started when the application starts and shut down when
    it stops.

    Args:
        service: Trigger service to expose. Built from `settings` if omitted.
        settings: Settings used when building the service.
        enable_cors: Enable CORS middleware.
        cors_origins: List of allowed CORS origins.
            Defaults to ["*"] for development.

    Returns:
        Configured FastAPI application.
    """
    if service is None:
        service = GuildFlowService(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await service.start()
        try:
            yield
        finally:
            await service.shutdown()

    app = FastAPI(
        title="GuildFlow API",
        description="Schedule and event triggers for guild workflows",
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )

    # Store service in app state
    app.state.service = service

    # Configure CORS
    if enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins or ["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # Register API routers
    app.include_router(health.router, prefix="/api", tags=["health"])
    app.include_router(schedules.router, prefix="/api", tags=["schedules"])
    app.include_router(events.router, prefix="/api", tags=["events"])

    return app
