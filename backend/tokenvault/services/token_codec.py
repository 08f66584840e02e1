"""Token codec - signs and verifies self-contained JWT bearer tokens."""

import logging
import secrets
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from jwt.exceptions import PyJWTError

from tokenvault.exceptions import ConfigMissingError, InvalidTokenError, TokenExpiredError

logger = logging.getLogger(__name__)

REQUIRED_CLAIMS = ["sub", "exp", "type"]


class TokenCodec:
    """Stateless JWT signer/verifier.

    The secret and lifetime are supplied per call so that one codec serves
    every token class.
    """

    def __init__(self, algorithm: str = "HS256"):
        self.algorithm = algorithm

    def issue(self, claims: dict[str, Any], secret: str, ttl: timedelta) -> str:
        """Sign claims into a token valid for ``ttl``.

        Adds ``iat``, ``exp`` and a random ``jti`` so that two tokens for the
        same subject are never identical, even within the same second.
        """
        if not secret:
            raise ConfigMissingError("Signing secret is not configured")

        now = datetime.now(UTC)
        payload = {
            **claims,
            "iat": now,
            "exp": now + ttl,
            "jti": secrets.token_hex(16),
        }
        token = jwt.encode(payload, secret, algorithm=self.algorithm)
        # PyJWT 2.x returns str; older type stubs may declare bytes
        return str(token)

    def parse(self, token: str, secret: str) -> dict[str, Any]:
        """Verify signature and expiry and return the claims.

        Raises:
            TokenExpiredError: The embedded expiry has passed.
            InvalidTokenError: Any signature or structural failure.
        """
        if not secret:
            raise ConfigMissingError("Signing secret is not configured")

        try:
            return jwt.decode(
                token,
                secret,
                algorithms=[self.algorithm],
                options={"require": REQUIRED_CLAIMS},
            )
        except jwt.ExpiredSignatureError as e:
            raise TokenExpiredError("Token has expired") from e
        except PyJWTError as e:
            raise InvalidTokenError(f"Invalid token: {e}") from e
