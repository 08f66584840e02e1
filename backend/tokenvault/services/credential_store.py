"""Credential store - persistence of one shadow record per token key."""

from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tokenvault.core.logging import get_logger
from tokenvault.exceptions import StoreUnavailableError
from tokenvault.models import (
    CredentialRecord,
    RecoverPasswordTokenRecord,
    RefreshTokenRecord,
    VerifyEmailTokenRecord,
)
from tokenvault.services.token_kinds import TokenKind

logger = get_logger("credential_store")

RECORD_MODELS: dict[TokenKind, type[CredentialRecord]] = {
    TokenKind.REFRESH: RefreshTokenRecord,
    TokenKind.VERIFY_EMAIL: VerifyEmailTokenRecord,
    TokenKind.RECOVER_PASSWORD: RecoverPasswordTokenRecord,
}

# Transport-level failures that a caller may retry
UNAVAILABLE_ERRORS: tuple[type[BaseException], ...] = (
    PoolTimeoutError,
    TimeoutError,
    ConnectionError,
    OSError,
)

# SQLite reports schema problems as OperationalError too; these never heal
PERMANENT_MESSAGES = (
    "no such table",
    "no such column",
    "syntax error",
    "has no column named",
)

_INSERT_BY_DIALECT = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def _as_utc(value: datetime, name: str) -> datetime:
    # SQLite keeps the wall-clock part only, so every bound timestamp is UTC
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"{name} must be timezone-aware")
    return value.astimezone(UTC)


@dataclass(frozen=True)
class CredentialKey:
    """Natural key of a credential record.

    ``device`` is only meaningful for refresh tokens; other classes key on
    the subject alone and keep it empty.
    """

    subject: str
    device: str = ""


def is_store_unavailable(exc: BaseException) -> bool:
    """Whether ``exc`` is a transient failure to reach the store.

    Driver errors count only when the connection was lost or the driver
    reported an operational/interface problem that is not a schema error.
    """
    if isinstance(exc, DBAPIError):
        if exc.connection_invalidated:
            return True
        if isinstance(exc.orig, UNAVAILABLE_ERRORS):
            return True
        if not isinstance(exc, (OperationalError, InterfaceError)):
            return False
        message = str(exc.orig).lower()
        return not any(marker in message for marker in PERMANENT_MESSAGES)
    return isinstance(exc, UNAVAILABLE_ERRORS)


@contextmanager
def store_errors() -> Iterator[None]:
    """Re-raise transient store failures as ``StoreUnavailableError``.

    Anything else, including schema errors and cancellation, propagates as is.
    """
    try:
        yield
    except Exception as e:
        if not is_store_unavailable(e):
            raise
        logger.error(f"Credential store unavailable: {type(e).__name__}")
        raise StoreUnavailableError("Credential store is unavailable") from e


@asynccontextmanager
async def store_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """Open a session inside a transaction, one unit of work.

    Commits on success, rolls back on error. Connection failures and
    timeouts become ``StoreUnavailableError``.
    """
    with store_errors():
        async with session_factory() as session, session.begin():
            yield session


class CredentialStore:
    """Access patterns for one persisted token class.

    The one-record-per-key invariant rests on ``upsert`` being a single
    ``INSERT ... ON CONFLICT DO UPDATE`` on the natural key; there is no
    read-modify-write window.
    """

    def __init__(self, db: AsyncSession, kind: TokenKind):
        if not kind.persisted:
            raise ValueError(f"Token class '{kind.value}' has no credential records")
        self.db = db
        self.kind = kind
        self.model = RECORD_MODELS[kind]

    def _key_columns(self) -> list[str]:
        if self.kind.device_bound:
            return ["subject_key", "device"]
        return ["subject_key"]

    def _key_values(self, key: CredentialKey) -> dict[str, Any]:
        values: dict[str, Any] = {"subject_key": key.subject}
        if self.kind.device_bound:
            values["device"] = key.device
        return values

    def _key_filter(self, key: CredentialKey) -> list[Any]:
        return [
            getattr(self.model, column) == value
            for column, value in self._key_values(key).items()
        ]

    def _insert(self):
        dialect = self.db.get_bind().dialect.name
        try:
            return _INSERT_BY_DIALECT[dialect]
        except KeyError:
            raise NotImplementedError(
                f"Atomic upsert is not available for the '{dialect}' dialect"
            ) from None

    async def upsert(self, key: CredentialKey, encrypted_token: str, expires_at: datetime) -> None:
        """Create the record for ``key`` or replace its token and expiry."""
        expires_at = _as_utc(expires_at, "expires_at")
        now = datetime.now(UTC)
        stmt = self._insert()(self.model).values(
            id=uuid4(),
            encrypted_token=encrypted_token,
            expires_at=expires_at,
            created_at=now,
            updated_at=now,
            **self._key_values(key),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=self._key_columns(),
            set_={
                "encrypted_token": stmt.excluded.encrypted_token,
                "expires_at": stmt.excluded.expires_at,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        await self.db.execute(stmt)

    async def find(self, key: CredentialKey) -> CredentialRecord | None:
        """Get the record for ``key``, if any."""
        result = await self.db.execute(select(self.model).where(*self._key_filter(key)))
        return result.scalar_one_or_none()

    async def delete_one(self, key: CredentialKey) -> int:
        """Delete the record for ``key``. Returns 0 when it was already absent."""
        result = await self.db.execute(delete(self.model).where(*self._key_filter(key)))
        return result.rowcount or 0

    async def delete_for_subject(self, subject: str) -> int:
        """Delete every record of a subject (all devices)."""
        result = await self.db.execute(
            delete(self.model).where(self.model.subject_key == subject)
        )
        return result.rowcount or 0

    async def delete_expired(self, now: datetime | None = None) -> int:
        """Delete records whose ``expires_at`` is strictly before ``now``."""
        now = _as_utc(now, "now") if now is not None else datetime.now(UTC)
        result = await self.db.execute(delete(self.model).where(self.model.expires_at < now))
        return result.rowcount or 0

    async def count(self) -> int:
        """Number of records currently stored for this class."""
        result = await self.db.execute(select(func.count()).select_from(self.model))
        return result.scalar_one()
