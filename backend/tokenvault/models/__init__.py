# tokenvault Models
from tokenvault.models.base import BaseModel
from tokenvault.models.credential_record import (
    CredentialRecord,
    RecoverPasswordTokenRecord,
    RefreshTokenRecord,
    VerifyEmailTokenRecord,
)

__all__ = [
    "BaseModel",
    "CredentialRecord",
    "RecoverPasswordTokenRecord",
    "RefreshTokenRecord",
    "VerifyEmailTokenRecord",
]
