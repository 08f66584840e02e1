"""Token classes - the closed set of bearer token variants."""

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum

from tokenvault.core.config import Settings
from tokenvault.exceptions import ConfigMissingError


class TokenKind(str, Enum):
    """Bearer token classes.

    The value doubles as the ``type`` claim embedded in every token.
    """

    ACCESS = "access"
    REFRESH = "refresh"
    VERIFY_EMAIL = "verify_email"
    RECOVER_PASSWORD = "recover_password"

    @property
    def persisted(self) -> bool:
        """Whether issued tokens are shadowed by a credential record."""
        return self is not TokenKind.ACCESS

    @property
    def device_bound(self) -> bool:
        """Whether records are keyed by (subject, device) instead of subject."""
        return self is TokenKind.REFRESH


PERSISTED_KINDS = tuple(kind for kind in TokenKind if kind.persisted)


@dataclass(frozen=True)
class TokenClassConfig:
    """Signing secret and lifetimes for one token class."""

    kind: TokenKind
    secret: str
    ttl: timedelta
    record_ttl: timedelta

    def __repr__(self) -> str:
        # Never render the secret
        return f"TokenClassConfig(kind={self.kind.value!r}, ttl={self.ttl}, record_ttl={self.record_ttl})"


def build_token_classes(settings: Settings) -> dict[TokenKind, TokenClassConfig]:
    """Build the per-class configuration from settings.

    Raises:
        ConfigMissingError: If any signing secret is empty (names only, never values).
    """
    grace = timedelta(seconds=settings.credential_record_grace_seconds)
    sources = {
        TokenKind.ACCESS: (
            "JWT_ACCESS_SECRET",
            settings.jwt_access_secret,
            settings.access_token_expire_minutes,
        ),
        TokenKind.REFRESH: (
            "JWT_REFRESH_SECRET",
            settings.jwt_refresh_secret,
            settings.refresh_token_expire_minutes,
        ),
        TokenKind.VERIFY_EMAIL: (
            "JWT_VERIFY_EMAIL_SECRET",
            settings.jwt_verify_email_secret,
            settings.verify_email_token_expire_minutes,
        ),
        TokenKind.RECOVER_PASSWORD: (
            "JWT_RECOVER_PASSWORD_SECRET",
            settings.jwt_recover_password_secret,
            settings.recover_password_token_expire_minutes,
        ),
    }

    missing = [name for name, secret, _ in sources.values() if not secret]
    if missing:
        raise ConfigMissingError(f"Missing signing secrets: {', '.join(missing)}")

    classes = {}
    for kind, (_, secret, minutes) in sources.items():
        ttl = timedelta(minutes=minutes)
        classes[kind] = TokenClassConfig(
            kind=kind,
            secret=secret,
            ttl=ttl,
            record_ttl=ttl + grace,
        )
    return classes
