# tokenvault Services
from tokenvault.services.credential_store import CredentialKey, CredentialStore
from tokenvault.services.crypto import CipherBox, generate_key
from tokenvault.services.rotation import RotationService, TokenPair
from tokenvault.services.token import IdentityStore, TokenService
from tokenvault.services.token_codec import TokenCodec
from tokenvault.services.token_kinds import TokenClassConfig, TokenKind, build_token_classes
from tokenvault.services.token_sweep import TokenSweepService

__all__ = [
    "CipherBox",
    "CredentialKey",
    "CredentialStore",
    "IdentityStore",
    "RotationService",
    "TokenClassConfig",
    "TokenCodec",
    "TokenKind",
    "TokenPair",
    "TokenService",
    "TokenSweepService",
    "build_token_classes",
    "generate_key",
]
