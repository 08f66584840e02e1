"""tokenvault - FastAPI Application Factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from tokenvault.api import health_router, register_exception_handlers, tokens_router
from tokenvault.core import settings as default_settings
from tokenvault.core.config import Settings
from tokenvault.core.lifespan import common_shutdown, common_startup
from tokenvault.core.logging import get_logger
from tokenvault.services.token import TokenService

logger = get_logger("main")


def create_app(
    settings: Settings | None = None,
    token_service: TokenService | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    A pre-built ``token_service`` skips the startup sequence (used by tests
    and by hosts that manage the service themselves).
    """
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler for startup/shutdown."""
        if token_service is not None:
            yield
            return

        logger.info(f"Starting {settings.app_name} v{settings.app_version}")
        app.state.token_service = await common_startup(logger, settings)
        yield
        logger.info("Shutting down...")
        await common_shutdown(logger)

    app = FastAPI(
        title=settings.app_name,
        description="Credential lifecycle and refresh-token rotation",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
    )
    if token_service is not None:
        app.state.token_service = token_service

    register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(tokens_router)

    return app


# Application instance
app = create_app()
