"""Health check and version endpoints."""

import logging
import time
from typing import Any

from fastapi import APIRouter, Depends

from .. import __version__
from ..config import settings
from ..errors import StoreError
from ..models import HealthResponse, VersionResponse
from ..storage import DocumentStore, get_store
from ..telemetry import TelemetryEvents, track_event

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

_start_time = time.time()


def format_uptime(seconds_total: float) -> str:
    """Render seconds as ``Days: d, Hours: h, Minutes: m, Seconds: s``."""
    days, remaining = divmod(int(seconds_total), 86400)
    hours, remaining = divmod(remaining, 3600)
    minutes, seconds = divmod(remaining, 60)
    return f"Days: {days}, Hours: {hours}, Minutes: {minutes}, Seconds: {seconds}"


@router.get("/health", response_model=HealthResponse)
async def health_check(store: DocumentStore = Depends(get_store)) -> HealthResponse:
    """Health check endpoint. Reports ``degraded`` when the document store does not answer."""
    store_connected = False
    try:
        store_connected = await store.ping()
    except StoreError as e:
        logger.error(f"Document store health check failed: {e}")
        track_event(TelemetryEvents.HEALTH_CHECK_FAILED, {"error_message": str(e)})

    status = "healthy" if store_connected else "degraded"
    track_event(TelemetryEvents.HEALTH_CHECK_COMPLETED, {"status": status})

    return HealthResponse(
        status=status,
        version=__version__,
        uptime=format_uptime(time.time() - _start_time),
        store_connected=store_connected,
    )


@router.get("/version", response_model=VersionResponse)
async def get_version() -> VersionResponse:
    """Get version information."""
    return VersionResponse(service_version=__version__, document_store=settings.document_store)


@router.get("/")
async def root() -> dict[str, Any]:
    """Root endpoint with service information."""
    return {
        "service": "Ice-breaker API",
        "version": __version__,
        "description": "Channels, live ice-breaker sessions and chat for small groups",
        "docs": "/docs",
        "health": "/health",
    }
