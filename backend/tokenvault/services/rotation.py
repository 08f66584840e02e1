"""Token rotation service - verify a refresh token, then reissue the pair."""

from dataclasses import asdict, dataclass

from tokenvault.core.logging import get_logger
from tokenvault.exceptions import StoreUnavailableError
from tokenvault.services.token import TokenService
from tokenvault.services.token_kinds import TokenKind

logger = get_logger("rotation")


@dataclass(frozen=True)
class TokenPair:
    """Freshly issued access/refresh tokens."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = 0  # Access token lifetime in seconds

    def to_dict(self) -> dict:
        return asdict(self)


class RotationService:
    """Refresh-token rotation.

    Issuing the new refresh token overwrites the credential record of the
    (subject, device) key, which retires the token that was just used: a
    replay of it decodes fine but no longer matches the stored record.
    """

    def __init__(self, token_service: TokenService):
        self.token_service = token_service

    async def rotate(self, refresh_token: str, device: str) -> TokenPair:
        """Exchange a valid refresh token for a new (access, refresh) pair.

        A rejected token aborts with no side effects. A storage failure after
        verification leaves the caller with a signed refresh token that was
        never registered; it is surfaced, not retried here.
        """
        logger.debug("Rotating tokens")
        subject = await self.token_service.verify_refresh_token(refresh_token, device)

        access_token = await self.token_service.generate_access_token(subject)
        try:
            new_refresh_token = await self.token_service.generate_refresh_token(subject, device)
        except StoreUnavailableError:
            logger.error(
                "Token rotation failed after verification; the previous refresh token "
                "remains registered"
            )
            raise

        access_config = self.token_service.token_classes[TokenKind.ACCESS]
        logger.info("Tokens rotated")
        return TokenPair(
            access_token=access_token,
            refresh_token=new_refresh_token,
            expires_in=int(access_config.ttl.total_seconds()),
        )
