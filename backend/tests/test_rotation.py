"""Tests for refresh-token rotation."""

from unittest.mock import AsyncMock, patch

import pytest

from tokenvault.exceptions import (
    InvalidTokenError,
    StoreUnavailableError,
    TokenExpiredError,
    TokenMismatchError,
    TokenNotFoundError,
)
from tokenvault.services.credential_store import CredentialKey, CredentialStore, store_session
from tokenvault.services.rotation import RotationService, TokenPair
from tokenvault.services.token_kinds import TokenKind

pytestmark = pytest.mark.asyncio


@pytest.fixture
def rotation_service(token_service):
    return RotationService(token_service)


async def _stored_refresh_token(session_factory, cipher, subject: str, device: str) -> str | None:
    async with store_session(session_factory) as db:
        record = await CredentialStore(db, TokenKind.REFRESH).find(CredentialKey(subject, device))
    return cipher.open(record.encrypted_token) if record else None


class TestRotate:
    async def test_rotation_returns_new_pair(self, rotation_service, token_service):
        original = await token_service.generate_refresh_token("u1", "deviceA")

        pair = await rotation_service.rotate(original, "deviceA")

        assert isinstance(pair, TokenPair)
        assert pair.refresh_token != original
        assert pair.token_type == "bearer"
        assert pair.expires_in == 15 * 60
        assert await token_service.verify_access_token(pair.access_token) == "u1"
        assert await token_service.verify_refresh_token(pair.refresh_token, "deviceA") == "u1"

    async def test_new_token_replaces_stored_record(
        self, rotation_service, token_service, session_factory, cipher
    ):
        original = await token_service.generate_refresh_token("u1", "deviceA")

        pair = await rotation_service.rotate(original, "deviceA")

        stored = await _stored_refresh_token(session_factory, cipher, "u1", "deviceA")
        assert stored == pair.refresh_token

    async def test_replay_of_rotated_token_rejected(self, rotation_service, token_service):
        """A refresh token can be exchanged once; replaying it fails."""
        original = await token_service.generate_refresh_token("u1", "deviceA")
        await rotation_service.rotate(original, "deviceA")

        with pytest.raises(TokenMismatchError):
            await rotation_service.rotate(original, "deviceA")

    async def test_rotation_chain(self, rotation_service, token_service):
        token = await token_service.generate_refresh_token("u1", "deviceA")

        for _ in range(3):
            token = (await rotation_service.rotate(token, "deviceA")).refresh_token

        assert await token_service.verify_refresh_token(token, "deviceA") == "u1"

    async def test_other_devices_unaffected(self, rotation_service, token_service):
        token_a = await token_service.generate_refresh_token("u1", "deviceA")
        token_b = await token_service.generate_refresh_token("u1", "deviceB")

        await rotation_service.rotate(token_a, "deviceA")

        assert await token_service.verify_refresh_token(token_b, "deviceB") == "u1"

    async def test_to_dict(self):
        pair = TokenPair(access_token="a", refresh_token="r", expires_in=900)

        assert pair.to_dict() == {
            "access_token": "a",
            "refresh_token": "r",
            "token_type": "bearer",
            "expires_in": 900,
        }


class TestRotateFailures:
    async def test_rejected_token_has_no_side_effects(
        self, rotation_service, token_service, session_factory, cipher
    ):
        original = await token_service.generate_refresh_token("u1", "deviceA")

        with pytest.raises(InvalidTokenError):
            await rotation_service.rotate(original, "deviceB")

        assert await _stored_refresh_token(session_factory, cipher, "u1", "deviceA") == original
        assert await _stored_refresh_token(session_factory, cipher, "u1", "deviceB") is None

    async def test_access_token_cannot_be_rotated(self, rotation_service, token_service):
        access = await token_service.generate_access_token("u1")

        with pytest.raises(InvalidTokenError):
            await rotation_service.rotate(access, "deviceA")

    async def test_logged_out_token_not_found(self, rotation_service, token_service):
        original = await token_service.generate_refresh_token("u1", "deviceA")
        await token_service.delete(TokenKind.REFRESH, "u1", "deviceA")

        with pytest.raises(TokenNotFoundError):
            await rotation_service.rotate(original, "deviceA")

    async def test_expired_refresh_token(self, token_service):
        token_service.verify_refresh_token = AsyncMock(side_effect=TokenExpiredError())
        service = RotationService(token_service)

        with pytest.raises(TokenExpiredError):
            await service.rotate("expired", "deviceA")

    async def test_store_failure_after_verification(
        self, rotation_service, token_service, session_factory, cipher
    ):
        """If storing the new token fails, the previous one stays registered."""
        original = await token_service.generate_refresh_token("u1", "deviceA")

        with patch(
            "tokenvault.services.token.CredentialStore.upsert",
            AsyncMock(side_effect=StoreUnavailableError("down")),
        ):
            with pytest.raises(StoreUnavailableError) as exc_info:
                await rotation_service.rotate(original, "deviceA")

        assert exc_info.value.token_kind is TokenKind.REFRESH
        assert await _stored_refresh_token(session_factory, cipher, "u1", "deviceA") == original
        assert await token_service.verify_refresh_token(original, "deviceA") == "u1"
