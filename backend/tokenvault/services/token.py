"""Token service - issue, verify and revoke bearer tokens of every class."""

import asyncio
import secrets
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tokenvault.core.config import Settings, validate_security_settings
from tokenvault.core.logging import get_logger
from tokenvault.exceptions import (
    InvalidTokenError,
    TokenMismatchError,
    TokenNotFoundError,
    TokenVaultError,
)
from tokenvault.services.credential_store import CredentialKey, CredentialStore, store_session
from tokenvault.services.crypto import CipherBox
from tokenvault.services.token_codec import TokenCodec
from tokenvault.services.token_kinds import (
    PERSISTED_KINDS,
    TokenClassConfig,
    TokenKind,
    build_token_classes,
)

logger = get_logger("token_service")


class IdentityStore(Protocol):
    """Read-only lookup into the user-identity store."""

    async def find_by_id(self, subject_id: str) -> Any | None: ...


@contextmanager
def annotate_errors(kind: TokenKind) -> Iterator[None]:
    """Tag core errors raised inside the block with the token class."""
    try:
        yield
    except TokenVaultError as e:
        raise e.with_kind(kind)


class TokenService:
    """Orchestrates codec, cipher box and credential store.

    Every token class goes through the same generate/verify routine,
    parametrized by its ``TokenClassConfig``. Each store operation is its own
    unit of work with its own session.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cipher: CipherBox,
        token_classes: dict[TokenKind, TokenClassConfig],
        codec: TokenCodec | None = None,
        identity_store: IdentityStore | None = None,
    ):
        missing = [kind.value for kind in TokenKind if kind not in token_classes]
        if missing:
            raise ValueError(f"Token class configuration missing for: {', '.join(missing)}")
        self.session_factory = session_factory
        self.cipher = cipher
        self.token_classes = token_classes
        self.codec = codec or TokenCodec()
        self.identity_store = identity_store

    @classmethod
    def from_settings(
        cls,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings,
        identity_store: IdentityStore | None = None,
    ) -> "TokenService":
        """Build a service from configuration.

        Raises:
            ConfigMissingError: If the cipher key or any signing secret is absent.
        """
        validate_security_settings(settings)
        return cls(
            session_factory=session_factory,
            cipher=CipherBox(settings.tokenvault_encryption_key),
            token_classes=build_token_classes(settings),
            codec=TokenCodec(algorithm=settings.jwt_algorithm),
            identity_store=identity_store,
        )

    def _key(self, kind: TokenKind, subject: str, device: str | None) -> CredentialKey:
        if not subject:
            raise ValueError("Token subject must be a non-empty string")
        if kind.device_bound:
            if device is None:
                raise ValueError(f"A device is required for {kind.value} tokens")
            return CredentialKey(subject=subject, device=device)
        if device is not None:
            raise ValueError(f"{kind.value} tokens are not bound to a device")
        return CredentialKey(subject=subject)

    # --- Generation ---

    async def generate(self, kind: TokenKind, subject: str, device: str | None = None) -> str:
        """Issue a token and, for persisted classes, register its sealed shadow.

        Returns the plaintext signed token; only the sealed form is stored.
        """
        key = self._key(kind, subject, device)
        config = self.token_classes[kind]

        claims: dict[str, Any] = {"sub": key.subject, "type": kind.value}
        if kind.device_bound:
            claims["device"] = key.device

        with annotate_errors(kind):
            token = self.codec.issue(claims, config.secret, config.ttl)
            if not kind.persisted:
                logger.debug(f"Issued {kind.value} token")
                return token

            envelope = self.cipher.seal(token)
            expires_at = datetime.now(UTC) + config.record_ttl
            async with store_session(self.session_factory) as db:
                await CredentialStore(db, kind).upsert(key, envelope, expires_at)

        logger.info(f"Issued {kind.value} token and stored credential record")
        return token

    async def generate_access_token(self, subject: str) -> str:
        return await self.generate(TokenKind.ACCESS, subject)

    async def generate_refresh_token(self, subject: str, device: str) -> str:
        return await self.generate(TokenKind.REFRESH, subject, device)

    async def generate_verify_email_token(self, subject: str) -> str:
        return await self.generate(TokenKind.VERIFY_EMAIL, subject)

    async def generate_recover_password_token(self, subject: str) -> str:
        return await self.generate(TokenKind.RECOVER_PASSWORD, subject)

    # --- Verification ---

    def decode(self, kind: TokenKind, token: str) -> dict[str, Any]:
        """Verify signature, expiry and token class; return the claims."""
        config = self.token_classes[kind]
        with annotate_errors(kind):
            claims = self.codec.parse(token, config.secret)
            if claims.get("type") != kind.value:
                raise InvalidTokenError(f"Not a {kind.value} token")
        return claims

    async def verify(self, kind: TokenKind, token: str, device: str | None = None) -> str:
        """Verify a presented token and return its subject.

        Persisted classes are cross-checked against the decrypted credential
        record: a token that decodes fine but is no longer the most recent one
        issued for its key (already rotated out) fails with
        ``TokenMismatchError``.
        """
        claims = self.decode(kind, token)
        subject = claims["sub"]

        with annotate_errors(kind):
            if kind.device_bound:
                if device is None:
                    raise ValueError(f"A device is required for {kind.value} tokens")
                if claims.get("device") != device:
                    logger.warning(f"{kind.value} token presented from a different device")
                    raise InvalidTokenError("Token was not issued for this device")

            if not kind.persisted:
                return subject

            key = self._key(kind, subject, device)
            async with store_session(self.session_factory) as db:
                record = await CredentialStore(db, kind).find(key)
                envelope = record.encrypted_token if record is not None else None

            if envelope is None:
                logger.warning(f"No credential record for presented {kind.value} token")
                raise TokenNotFoundError("Token not found")

            stored = self.cipher.open(envelope)
            if not secrets.compare_digest(stored.encode("utf-8"), token.encode("utf-8")):
                logger.warning(f"Stale or replayed {kind.value} token rejected")
                raise TokenMismatchError("Token does not match the active credential")

        logger.debug(f"Verified {kind.value} token")
        return subject

    async def verify_access_token(self, token: str) -> Any:
        """Verify an access token and resolve the identity it names.

        Without an identity store configured, the subject id is returned.
        """
        subject = await self.verify(TokenKind.ACCESS, token)
        if self.identity_store is None:
            return subject

        identity = await self.identity_store.find_by_id(subject)
        if identity is None:
            logger.warning("Access token names an identity that no longer exists")
            raise TokenNotFoundError("Identity not found", token_kind=TokenKind.ACCESS)
        return identity

    async def verify_refresh_token(self, token: str, device: str) -> str:
        return await self.verify(TokenKind.REFRESH, token, device)

    async def verify_verify_email_token(self, token: str) -> str:
        return await self.verify(TokenKind.VERIFY_EMAIL, token)

    async def verify_recover_password_token(self, token: str) -> str:
        return await self.verify(TokenKind.RECOVER_PASSWORD, token)

    # --- Revocation ---

    async def delete(self, kind: TokenKind, subject: str, device: str | None = None) -> bool:
        """Delete one credential record (single-device logout).

        Idempotent: returns False when there was nothing to delete.
        """
        key = self._key(kind, subject, device)
        with annotate_errors(kind):
            async with store_session(self.session_factory) as db:
                deleted = await CredentialStore(db, kind).delete_one(key)
        if deleted:
            logger.info(f"Deleted {kind.value} credential record")
        return deleted > 0

    async def delete_all(self, kind: TokenKind, subject: str) -> int:
        """Delete every record of a subject for one class (all-device logout)."""
        if not subject:
            raise ValueError("Token subject must be a non-empty string")
        with annotate_errors(kind):
            async with store_session(self.session_factory) as db:
                deleted = await CredentialStore(db, kind).delete_for_subject(subject)
        logger.info(f"Deleted {deleted} {kind.value} credential records for subject")
        return deleted

    async def revoke_subject(self, subject: str) -> int:
        """Delete every credential record of a subject across all classes."""
        counts = await asyncio.gather(*(self.delete_all(kind, subject) for kind in PERSISTED_KINDS))
        return sum(counts)

    # --- Sweep ---

    async def _sweep_kind(self, kind: TokenKind, now: datetime) -> int:
        with annotate_errors(kind):
            async with store_session(self.session_factory) as db:
                return await CredentialStore(db, kind).delete_expired(now)

    async def sweep(self) -> int:
        """Delete expired records of every persisted class concurrently.

        Returns the total number of records removed.
        """
        now = datetime.now(UTC)
        counts = await asyncio.gather(*(self._sweep_kind(kind, now) for kind in PERSISTED_KINDS))
        total = sum(counts)
        if total > 0:
            logger.info(
                "Swept expired credential records: "
                + ", ".join(f"{kind.value}={count}" for kind, count in zip(PERSISTED_KINDS, counts))
            )
        return total
