"""Token API endpoints - refresh rotation and logout."""

from fastapi import APIRouter, Depends, Request

from tokenvault.core.logging import get_logger
from tokenvault.schemas import ErrorResponse, LogoutResponse, RefreshRequest, TokenResponse
from tokenvault.services.rotation import RotationService
from tokenvault.services.token import TokenService
from tokenvault.services.token_kinds import TokenKind

logger = get_logger("api.tokens")

router = APIRouter(
    prefix="/tokens",
    tags=["tokens"],
    responses={
        401: {"model": ErrorResponse, "description": "Token rejected"},
        503: {"model": ErrorResponse, "description": "Credential store unavailable"},
    },
)

DEVICE_HEADER = "X-Device-Id"
UNKNOWN_DEVICE = "unknown"
MAX_DEVICE_LENGTH = 255


def get_device(request: Request) -> str:
    """Device discriminator from request metadata.

    Prefers an explicit device id header, then the user agent.
    """
    device = request.headers.get(DEVICE_HEADER) or request.headers.get("User-Agent")
    return (device or UNKNOWN_DEVICE)[:MAX_DEVICE_LENGTH]


def get_token_service(request: Request) -> TokenService:
    """Dependency to get the token service built at startup."""
    return request.app.state.token_service


def get_rotation_service(
    token_service: TokenService = Depends(get_token_service),
) -> RotationService:
    """Dependency to get the rotation service."""
    return RotationService(token_service)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_tokens(
    body: RefreshRequest,
    device: str = Depends(get_device),
    rotation_service: RotationService = Depends(get_rotation_service),
) -> TokenResponse:
    """Exchange a refresh token for a new access/refresh pair (token rotation).

    The presented refresh token is retired; replaying it is rejected.
    """
    pair = await rotation_service.rotate(body.refresh_token, device)
    return TokenResponse(**pair.to_dict())


@router.post("/logout", response_model=LogoutResponse)
async def logout(
    body: RefreshRequest,
    device: str = Depends(get_device),
    token_service: TokenService = Depends(get_token_service),
) -> LogoutResponse:
    """Revoke the refresh token of the calling device."""
    subject = await token_service.verify_refresh_token(body.refresh_token, device)
    deleted = await token_service.delete(TokenKind.REFRESH, subject, device)
    logger.info("Logged out one device")
    return LogoutResponse(message="Logged out successfully", revoked=int(deleted))


@router.post("/logout-all", response_model=LogoutResponse)
async def logout_all(
    body: RefreshRequest,
    device: str = Depends(get_device),
    token_service: TokenService = Depends(get_token_service),
) -> LogoutResponse:
    """Revoke the refresh tokens of every device of the caller."""
    subject = await token_service.verify_refresh_token(body.refresh_token, device)
    deleted = await token_service.delete_all(TokenKind.REFRESH, subject)
    logger.info(f"Logged out {deleted} devices")
    return LogoutResponse(message="Logged out from all devices", revoked=deleted)
