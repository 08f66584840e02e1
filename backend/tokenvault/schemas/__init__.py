# tokenvault Schemas
from tokenvault.schemas.token import (
    ErrorResponse,
    HealthResponse,
    LogoutResponse,
    RefreshRequest,
    TokenResponse,
)

__all__ = [
    "ErrorResponse",
    "HealthResponse",
    "LogoutResponse",
    "RefreshRequest",
    "TokenResponse",
]
