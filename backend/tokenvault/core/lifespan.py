"""Shared startup/shutdown logic for the HTTP app and the CLI sweeper.

Both entry points run the same sequence: configure logging, refuse to start
without the cipher key and signing secrets, create tables, and start the
background sweep.
"""

import asyncio
import logging

from tokenvault.core.config import Settings, validate_security_settings
from tokenvault.core.database import dispose_engine, get_session_maker, init_db
from tokenvault.core.logging import get_logger, setup_logging
from tokenvault.services.credential_store import store_errors
from tokenvault.services.token import IdentityStore, TokenService
from tokenvault.services.token_sweep import TokenSweepService

_logger = get_logger("lifespan")


def task_done_callback(task: asyncio.Task[None]) -> None:
    """Log unhandled exceptions from background tasks."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        _logger.error(f"Background task {task.get_name()} failed: {exc}")


async def common_startup(
    logger: logging.Logger,
    settings: Settings,
    identity_store: IdentityStore | None = None,
    start_sweeper: bool = True,
) -> TokenService:
    """Shared startup sequence.

    Raises:
        ConfigMissingError: If the cipher key or a signing secret is absent.
            This is fatal; the process must not start.
        StoreUnavailableError: If the store cannot be reached to create tables.
    """
    setup_logging(level=settings.log_level, format_type=settings.log_format)

    validate_security_settings(settings)
    for warning in settings.check_security_configuration():
        logger.warning(f"SECURITY: {warning}")

    with store_errors():
        await init_db()

    token_service = TokenService.from_settings(
        get_session_maker(), settings, identity_store=identity_store
    )

    if start_sweeper:
        sweep_service = TokenSweepService.get_instance()
        sweep_service.configure(token_service, settings.token_sweep_interval_seconds)
        await sweep_service.start()
        if TokenSweepService._task is not None:
            TokenSweepService._task.add_done_callback(task_done_callback)

    logger.info(f"{settings.app_name} v{settings.app_version} started")
    return token_service


async def common_shutdown(logger: logging.Logger) -> None:
    """Shared shutdown sequence: stop the sweeper, release connections."""
    sweep_service = TokenSweepService.get_instance()
    if sweep_service.running:
        await sweep_service.stop()

    await dispose_engine()
    logger.info("Shutdown complete")
