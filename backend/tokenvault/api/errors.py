"""Translation of the core error taxonomy into HTTP responses."""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from tokenvault.core.logging import get_logger
from tokenvault.exceptions import StoreUnavailableError, TokenExpiredError, TokenVaultError

logger = get_logger("api.errors")

# Seconds a client should wait before retrying a store outage
RETRY_AFTER_SECONDS = 1


def error_status(exc: TokenVaultError) -> int:
    """HTTP status for a core error."""
    if exc.client_error:
        return status.HTTP_401_UNAUTHORIZED
    if isinstance(exc, StoreUnavailableError):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def token_vault_error_handler(request: Request, exc: TokenVaultError) -> JSONResponse:
    """Map a core error to a JSON response.

    Client errors carry their message; server-side errors (envelope, config)
    are logged in full and answered with a generic message.
    """
    status_code = error_status(exc)
    log_extra = {"token_kind": exc.token_kind}
    headers: dict[str, str] = {}

    if exc.client_error:
        detail = "Token has expired" if isinstance(exc, TokenExpiredError) else exc.message
        headers["WWW-Authenticate"] = "Bearer"
        logger.info(f"Rejected token on {request.url.path}: {exc}", extra=log_extra)
    elif exc.retriable:
        detail = "Service temporarily unavailable"
        headers["Retry-After"] = str(RETRY_AFTER_SECONDS)
        logger.warning(f"Store unavailable on {request.url.path}: {exc}", extra=log_extra)
    else:
        detail = "Internal server error"
        logger.error(f"Unhandled token error on {request.url.path}: {exc}", extra=log_extra)

    return JSONResponse(
        status_code=status_code,
        content={
            "detail": detail,
            "error": type(exc).__name__,
            "retriable": exc.retriable,
        },
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TokenVaultError, token_vault_error_handler)  # type: ignore[arg-type]
