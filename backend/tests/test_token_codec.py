"""Tests for JWT issuing and parsing."""

from datetime import UTC, datetime, timedelta

import jwt
import pytest

from tokenvault.exceptions import ConfigMissingError, InvalidTokenError, TokenExpiredError
from tokenvault.services.token_codec import TokenCodec

SECRET = "codec-test-secret-0123456789abcdef0123"


@pytest.fixture
def codec():
    return TokenCodec()


class TestIssue:
    def test_issue_and_parse(self, codec):
        token = codec.issue({"sub": "u1", "type": "access"}, SECRET, timedelta(minutes=5))

        claims = codec.parse(token, SECRET)

        assert claims["sub"] == "u1"
        assert claims["type"] == "access"
        assert claims["exp"] > claims["iat"]
        assert "jti" in claims

    def test_expiry_matches_ttl(self, codec):
        token = codec.issue({"sub": "u1", "type": "access"}, SECRET, timedelta(minutes=15))

        claims = codec.parse(token, SECRET)

        assert claims["exp"] - claims["iat"] == 15 * 60

    def test_tokens_issued_same_second_differ(self, codec):
        """A random jti keeps successive tokens for one subject distinct."""
        first = codec.issue({"sub": "u1", "type": "refresh"}, SECRET, timedelta(minutes=5))
        second = codec.issue({"sub": "u1", "type": "refresh"}, SECRET, timedelta(minutes=5))

        assert first != second

    def test_extra_claims_preserved(self, codec):
        token = codec.issue(
            {"sub": "u1", "type": "refresh", "device": "deviceA"}, SECRET, timedelta(minutes=5)
        )

        assert codec.parse(token, SECRET)["device"] == "deviceA"

    def test_empty_secret_rejected(self, codec):
        with pytest.raises(ConfigMissingError):
            codec.issue({"sub": "u1", "type": "access"}, "", timedelta(minutes=5))


class TestParse:
    def test_expired_token(self, codec):
        token = codec.issue({"sub": "u1", "type": "access"}, SECRET, timedelta(seconds=-10))

        with pytest.raises(TokenExpiredError):
            codec.parse(token, SECRET)

    def test_wrong_secret(self, codec):
        token = codec.issue({"sub": "u1", "type": "access"}, SECRET, timedelta(minutes=5))

        with pytest.raises(InvalidTokenError):
            codec.parse(token, "another-secret-0123456789abcdef0123456")

    def test_garbage_token(self, codec):
        with pytest.raises(InvalidTokenError):
            codec.parse("not-a-jwt", SECRET)

    def test_tampered_payload(self, codec):
        token = codec.issue({"sub": "u1", "type": "access"}, SECRET, timedelta(minutes=5))
        header, _, signature = token.split(".")
        forged_payload = jwt.encode(
            {"sub": "admin", "type": "access", "exp": datetime.now(UTC) + timedelta(minutes=5)},
            "attacker",
            algorithm="HS256",
        ).split(".")[1]

        with pytest.raises(InvalidTokenError):
            codec.parse(f"{header}.{forged_payload}.{signature}", SECRET)

    def test_missing_type_claim(self, codec):
        token = jwt.encode(
            {"sub": "u1", "exp": datetime.now(UTC) + timedelta(minutes=5)},
            SECRET,
            algorithm="HS256",
        )

        with pytest.raises(InvalidTokenError):
            codec.parse(token, SECRET)

    def test_missing_exp_claim(self, codec):
        token = jwt.encode({"sub": "u1", "type": "access"}, SECRET, algorithm="HS256")

        with pytest.raises(InvalidTokenError):
            codec.parse(token, SECRET)

    def test_algorithm_none_rejected(self, codec):
        token = jwt.encode(
            {"sub": "u1", "type": "access", "exp": datetime.now(UTC) + timedelta(minutes=5)},
            None,
            algorithm="none",
        )

        with pytest.raises(InvalidTokenError):
            codec.parse(token, SECRET)

    def test_expired_is_token_error(self):
        assert TokenExpiredError.client_error
        assert not TokenExpiredError.retriable
