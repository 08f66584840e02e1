"""Pydantic schemas for the token API."""

from pydantic import BaseModel, Field


class RefreshRequest(BaseModel):
    """Request carrying the caller's current refresh token."""

    refresh_token: str = Field(..., min_length=1)


class TokenResponse(BaseModel):
    """Response with rotated JWT tokens."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = Field(description="Access token expiry in seconds")


class LogoutResponse(BaseModel):
    """Response after revoking credential records."""

    message: str
    revoked: int = Field(description="Number of credential records deleted")


class ErrorResponse(BaseModel):
    """Error body returned for every taxonomy error."""

    detail: str
    error: str = Field(description="Error class name, e.g. TokenMismatchError")
    retriable: bool = False


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    database: str
