"""API endpoints for the ice-breaker service."""

from .catalog import router as catalog_router
from .channels import router as channels_router
from .health import router as health_router
from .messages import router as messages_router
from .sessions import router as sessions_router
from .users import router as users_router

__all__ = [
    "health_router",
    "catalog_router",
    "channels_router",
    "sessions_router",
    "messages_router",
    "users_router",
]
