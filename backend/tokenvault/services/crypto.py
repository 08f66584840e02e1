"""Cryptographic utilities for credential record encryption.

Envelope format (persisted, must round-trip byte-for-byte)::

    <nonce-hex>:<authTag-hex>:<cipherText-hex>
"""

import logging
import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from tokenvault.exceptions import (
    AuthenticationFailureError,
    ConfigMissingError,
    InvalidKeyError,
    MalformedEnvelopeError,
)

logger = logging.getLogger(__name__)

KEY_HEX_LENGTH = 64  # 32 bytes / 256 bits
NONCE_LENGTH = 16
AUTH_TAG_LENGTH = 16
ENVELOPE_SEPARATOR = ":"


def generate_key() -> str:
    """Generate a fresh 256-bit key as 64 hex characters."""
    return secrets.token_hex(KEY_HEX_LENGTH // 2)


def parse_key(key_hex: str) -> bytes:
    """Convert a hex key to bytes.

    Raises:
        ConfigMissingError: If the key is empty.
        InvalidKeyError: If key is wrong length or invalid hex.
    """
    if not key_hex:
        raise ConfigMissingError("TOKENVAULT_ENCRYPTION_KEY is not configured")

    if len(key_hex) != KEY_HEX_LENGTH:
        raise InvalidKeyError(
            f"TOKENVAULT_ENCRYPTION_KEY must be exactly {KEY_HEX_LENGTH} hex characters "
            f"(32 bytes). Got {len(key_hex)} characters."
        )

    try:
        return bytes.fromhex(key_hex)
    except ValueError as e:
        raise InvalidKeyError("TOKENVAULT_ENCRYPTION_KEY must be valid hexadecimal") from e


class CipherBox:
    """AES-256-GCM authenticated encryption of opaque strings.

    Knows nothing about tokens or users. The key is validated once at
    construction so a missing or malformed key fails at startup, not on the
    first request.
    """

    def __init__(self, key_hex: str):
        self._aesgcm = AESGCM(parse_key(key_hex))

    def __repr__(self) -> str:
        return "<CipherBox aes-256-gcm>"

    def seal(self, plaintext: str) -> str:
        """Encrypt a string with a fresh random nonce.

        Returns: nonce-hex:authTag-hex:cipherText-hex
        """
        nonce = secrets.token_bytes(NONCE_LENGTH)
        # AESGCM appends the 16-byte tag to the ciphertext
        sealed = self._aesgcm.encrypt(nonce, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-AUTH_TAG_LENGTH], sealed[-AUTH_TAG_LENGTH:]
        logger.debug("Sealed credential envelope")
        return ENVELOPE_SEPARATOR.join((nonce.hex(), tag.hex(), ciphertext.hex()))

    def open(self, envelope: str) -> str:
        """Decrypt an envelope produced by ``seal``.

        Raises:
            MalformedEnvelopeError: Wrong field count, invalid hex, or bad nonce/tag length.
            AuthenticationFailureError: Tag does not verify (tampering or wrong key).
        """
        parts = envelope.split(ENVELOPE_SEPARATOR)
        if len(parts) != 3:
            raise MalformedEnvelopeError(
                f"Envelope must have 3 fields separated by '{ENVELOPE_SEPARATOR}', "
                f"got {len(parts)}"
            )

        try:
            nonce, tag, ciphertext = (bytes.fromhex(part) for part in parts)
        except ValueError as e:
            raise MalformedEnvelopeError("Envelope fields must be hexadecimal") from e

        if len(nonce) != NONCE_LENGTH:
            raise MalformedEnvelopeError(f"Envelope nonce must be {NONCE_LENGTH} bytes")
        if len(tag) != AUTH_TAG_LENGTH:
            raise MalformedEnvelopeError(f"Envelope auth tag must be {AUTH_TAG_LENGTH} bytes")

        try:
            plaintext = self._aesgcm.decrypt(nonce, ciphertext + tag, None)
        except InvalidTag as e:
            logger.warning("Credential envelope failed authentication")
            raise AuthenticationFailureError(
                "Envelope authentication failed (tampered data or wrong key)"
            ) from e

        logger.debug("Opened credential envelope")
        return plaintext.decode("utf-8")
