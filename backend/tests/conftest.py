"""Pytest configuration and fixtures for backend tests.

Database Handling:
- Each test gets a fresh SQLite file (aiosqlite) under pytest's tmp_path
- Set TEST_DATABASE_URL to run the store tests against PostgreSQL instead
  (tables are dropped after each test)
"""

import os
import tempfile
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

# Set test environment variables before importing app modules
TEST_ENCRYPTION_KEY = "a1" * 32  # Valid 32-byte key for tests
TEST_SECRETS = {
    "JWT_ACCESS_SECRET": "access-secret-for-tests-0123456789abcdef",
    "JWT_REFRESH_SECRET": "refresh-secret-for-tests-0123456789abcdef",
    "JWT_VERIFY_EMAIL_SECRET": "verify-email-secret-for-tests-0123456789",
    "JWT_RECOVER_PASSWORD_SECRET": "recover-password-secret-for-tests-012345",
}

os.environ["TOKENVAULT_ENCRYPTION_KEY"] = TEST_ENCRYPTION_KEY
for _name, _value in TEST_SECRETS.items():
    os.environ[_name] = _value
# Module-level engine (health checks, CLI) points at a throwaway file
os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{os.path.join(tempfile.gettempdir(), 'tokenvault_test.db')}",
)


# --- Singleton Reset Fixture ---


@pytest.fixture(autouse=True)
def reset_token_sweep_service():
    """Reset the TokenSweepService singleton between tests."""
    from tokenvault.services.token_sweep import TokenSweepService

    TokenSweepService._instance = None
    TokenSweepService._task = None
    yield
    TokenSweepService._instance = None
    TokenSweepService._task = None


# --- Configuration Fixtures ---


@pytest.fixture
def test_settings():
    """Settings built from the test environment."""
    from tokenvault.core.config import Settings

    return Settings(_env_file=None)


@pytest.fixture
def cipher():
    from tokenvault.services.crypto import CipherBox

    return CipherBox(TEST_ENCRYPTION_KEY)


# --- Database Fixtures ---


@pytest_asyncio.fixture(scope="function")
async def db_engine(tmp_path):
    """Create a database engine with all credential record tables."""
    from tokenvault.core.database import Base, init_db

    database_url = os.environ.get("TEST_DATABASE_URL") or (
        f"sqlite+aiosqlite:///{tmp_path / 'tokenvault.db'}"
    )
    engine = create_async_engine(database_url, poolclass=NullPool, echo=False)

    await init_db(engine)

    yield engine

    # Drop all tables after test
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for testing."""
    async with session_factory() as session:
        yield session
        await session.rollback()


# --- Service Fixtures ---


@pytest.fixture
def token_service(session_factory, test_settings):
    from tokenvault.services.token import TokenService

    return TokenService.from_settings(session_factory, test_settings)


@pytest_asyncio.fixture(scope="function")
async def async_client(token_service) -> AsyncGenerator[AsyncClient, None]:
    """Async test client for an app wired to the test token service."""
    from tokenvault.main import create_app

    app = create_app(token_service=token_service)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
