"""Error taxonomy for the token lifecycle core.

Every error raised by the core derives from ``TokenVaultError``. Two
class-level flags let callers translate errors without knowing their
concrete type:

- ``retriable``: the same request may succeed if repeated (only
  ``StoreUnavailableError``).
- ``client_error``: the presenter of the token is at fault (expired, forged,
  unknown or stale token), as opposed to a server-side failure.

The Token Service annotates errors with the token class they occurred in
(``token_kind``) so diagnostics can tell a refresh failure from a
password-reset failure. Messages never carry keys, secrets or envelopes.
"""

from typing import Any


class TokenVaultError(Exception):
    """Base error for the token lifecycle core."""

    retriable: bool = False
    client_error: bool = False

    def __init__(self, message: str = "", token_kind: Any = None):
        self.message = message or self.__class__.__doc__ or self.__class__.__name__
        self.token_kind = token_kind
        super().__init__(self.message)

    def with_kind(self, token_kind: Any) -> "TokenVaultError":
        """Annotate the error with a token class unless already annotated."""
        if self.token_kind is None:
            self.token_kind = token_kind
        return self

    def __str__(self) -> str:
        if self.token_kind is None:
            return self.message
        kind = getattr(self.token_kind, "value", self.token_kind)
        return f"[{kind}] {self.message}"


class ConfigMissingError(TokenVaultError):
    """A required key or signing secret is not configured."""


class InvalidKeyError(ConfigMissingError):
    """Encryption key is present but malformed (wrong length or not hex)."""


# --- Token errors (client side) ---


class TokenError(TokenVaultError):
    """Presented token was rejected."""

    client_error = True


class TokenExpiredError(TokenError):
    """Token has expired."""


class InvalidTokenError(TokenError):
    """Token signature or structure is invalid."""


class TokenNotFoundError(TokenError):
    """No credential record matches the token."""


class TokenMismatchError(TokenError):
    """Stored credential does not match the presented token."""


# --- Storage-layer errors ---


class CryptoError(TokenVaultError):
    """Base error for envelope encryption and decryption."""


class MalformedEnvelopeError(CryptoError):
    """Encrypted envelope does not have the expected format."""


class AuthenticationFailureError(CryptoError):
    """Envelope authentication tag did not verify."""


class StoreUnavailableError(TokenVaultError):
    """Credential store is temporarily unreachable."""

    retriable = True
