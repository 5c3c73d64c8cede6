"""
Telemetry Middleware for FastAPI

Tracks every HTTP request with timing and status code, and binds the caller,
channel and session addressed by the request to the telemetry context.
"""

import time
from collections.abc import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from .config import get_telemetry_config
from .context import (
    clear_request_context,
    generate_correlation_id,
    ids_from_path,
    set_request_context,
)
from .events import TelemetryEvents
from .tracker import track_event, track_exception

STREAM_MEDIA_TYPE = "text/event-stream"


class TelemetryMiddleware(BaseHTTPMiddleware):
    """
    Request telemetry.

    Captures request received/completed/failed events with duration and
    status code. Server-Sent Event streams are reported as completed when the
    response starts; their lifetime is not measured.

    The request id is returned in the ``X-Request-ID`` header.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()
        request_id = generate_correlation_id()

        # user_id is set by the auth middleware, which runs first
        set_request_context(
            request_id=request_id,
            user_id=getattr(request.state, "user_id", None),
            **ids_from_path(request.url.path),
        )
        request.state.request_id = request_id

        properties = {"endpoint": request.url.path, "method": request.method}

        try:
            track_event(TelemetryEvents.REQUEST_RECEIVED, properties)

            response = await call_next(request)

            streaming = response.headers.get("content-type", "").startswith(STREAM_MEDIA_TYPE)
            if not streaming or get_telemetry_config().track_stream_requests:
                track_event(
                    TelemetryEvents.REQUEST_COMPLETED,
                    {
                        **properties,
                        "status_code": response.status_code,
                        "duration_ms": (time.perf_counter() - start_time) * 1000,
                        "streaming": streaming,
                    },
                )

            response.headers["X-Request-ID"] = request_id
            return response

        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            track_exception(e, {**properties, "duration_ms": duration_ms})
            track_event(
                TelemetryEvents.REQUEST_FAILED,
                {
                    **properties,
                    "duration_ms": duration_ms,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
            )
            raise

        finally:
            clear_request_context()
