"""Main FastAPI application for the ice-breaker service."""

import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware

from . import __version__
from .api import (
    catalog_router,
    channels_router,
    health_router,
    messages_router,
    sessions_router,
    users_router,
)
from .config import settings
from .core import seed_catalogs
from .middleware.auth import AuthMiddleware
from .storage import close_store, init_store
from .telemetry import TelemetryMiddleware, flush_telemetry, initialize_telemetry

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan context manager for startup and shutdown."""
    logger.info("Starting ice-breaker service...")
    logger.info(f"Service version: {app.version}")
    logger.info(f"Host: {settings.service_host}:{settings.service_port}")

    initialize_telemetry()
    logger.info("Telemetry initialized")

    store = await init_store()

    if settings.seed_catalogs:
        await seed_catalogs(store, settings.catalog_path)

    logger.info("Ice-breaker service started successfully")

    yield

    logger.info("Shutting down ice-breaker service...")

    flush_telemetry()
    logger.info("Telemetry flushed")

    await close_store()
    logger.info("Ice-breaker service stopped")


app = FastAPI(
    title="Ice-breaker API",
    description="""
Backend for a small-group ice-breaker app.

## Concepts

### Channels
A channel is a named room owned by the user who created it. Users join a
channel with a display name, a short bio and up to four interest tags.

### Sessions
The owner starts sessions in a channel. A channel has at most one open
session at a time; ending it lets the owner start the next one. When a
session goes live an ice-breaker prompt is chosen from the members'
interests and stored on the session, so every member sees the same prompt.

### Live views
`GET /channels/{channel_id}/sessions/{session_id}/view` streams view
snapshots over Server-Sent Events: waiting, live with chat enabled, or
ended with a redirect to the session summary. Pass `mode=history` to browse
an ended session instead.

## API Endpoints

### Channels and members
- `POST /channels` - Create channel
- `GET /channels` - List owned channels
- `GET /channels/{id}` - Get channel
- `PATCH /channels/{id}` - Rename channel
- `GET /channels/{id}/host` - Owner console state
- `POST /channels/{id}/members` - Join channel
- `GET /channels/{id}/members` - List members
- `PUT /channels/{id}/members/me/interests` - Set interests

### Sessions and messages
- `POST /channels/{id}/sessions` - Start session
- `GET /channels/{id}/sessions/latest` - Latest session
- `POST /channels/{id}/sessions/{sid}/end` - End session
- `GET /channels/{id}/sessions/{sid}/view` - Live view stream
- `POST /channels/{id}/sessions/{sid}/messages` - Send message

### Users
- `GET /users/me/sessions` - Session history
- `GET /users/me/stats` - Sessions joined and channels hosted

### Catalog and health
- `GET /interest-tags` - Interest tags by section
- `GET /health` - Health check
""",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

# Telemetry middleware (inner, so the auth middleware has set the caller)
app.add_middleware(TelemetryMiddleware)

# Authentication middleware
app.add_middleware(AuthMiddleware)

# CORS middleware (outside auth, so preflight requests never reach it)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Trusted host middleware (security)
if settings.service_host != "0.0.0.0":
    app.add_middleware(
        TrustedHostMiddleware,
        allowed_hosts=[settings.service_host, "localhost", "127.0.0.1"],
    )

# Register routers
app.include_router(health_router)
app.include_router(catalog_router)
app.include_router(channels_router)
app.include_router(sessions_router)
app.include_router(messages_router)
app.include_router(users_router)


def main() -> None:
    """Main entry point for running the service."""
    import uvicorn

    uvicorn.run(
        "icebreaker_api.main:app",
        host=settings.service_host,
        port=settings.service_port,
        workers=settings.service_workers,
        log_level=settings.log_level,
        reload=False,
    )


if __name__ == "__main__":
    main()
