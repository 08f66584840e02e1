"""tokenvault Database Configuration - Async SQLAlchemy."""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from tokenvault.core.config import settings


def build_engine(database_url: str | None = None) -> AsyncEngine:
    """Create an async engine with pool settings from configuration.

    SQLite (used by the test-suite and local runs) does not accept the
    queue-pool sizing arguments, so they are only passed to server databases.
    """
    url = database_url or str(settings.database_url)
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=False)
    return create_async_engine(
        url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,
        pool_recycle=settings.db_pool_recycle,
        pool_pre_ping=True,  # Verify connection before use
        # Only echo SQL when debug is explicitly enabled
        echo=settings.debug and settings.log_level == "DEBUG",
    )


# Engine and session factory are created lazily so that importing models
# never requires a database driver to be installed.
_engine: AsyncEngine | None = None
_session_maker: async_sessionmaker[AsyncSession] | None = None

# Base class for models
Base = declarative_base()


def get_engine() -> AsyncEngine:
    """Get the process-wide engine."""
    global _engine
    if _engine is None:
        _engine = build_engine()
    return _engine


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """Get the process-wide session factory."""
    global _session_maker
    if _session_maker is None:
        _session_maker = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_maker


async def init_db(engine: AsyncEngine | None = None) -> None:
    """Create credential record tables if they do not exist."""
    # Register models on Base.metadata
    import tokenvault.models  # noqa: F401

    async with (engine or get_engine()).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
    """Close pooled connections (shutdown)."""
    global _engine, _session_maker
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_maker = None


async def check_db_connection() -> bool:
    """Check if database is reachable."""
    try:
        async with get_session_maker()() as session:
            await session.execute(text("SELECT 1"))
            return True
    except (OSError, ConnectionError) as e:
        # Expected network/connection errors
        from tokenvault.core.logging import get_logger

        get_logger("database").debug(f"Database connection check failed: {e}")
        return False
    except Exception as e:
        from tokenvault.core.logging import get_logger

        get_logger("database").warning(f"Unexpected error checking database connection: {e}")
        return False
