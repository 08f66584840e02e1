# tokenvault API
from tokenvault.api.errors import register_exception_handlers
from tokenvault.api.health import router as health_router
from tokenvault.api.tokens import router as tokens_router

__all__ = ["health_router", "register_exception_handlers", "tokens_router"]
