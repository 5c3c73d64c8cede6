"""
Request Context

Request-scoped properties (request id, caller, channel and session) kept in
a ContextVar so every telemetry event raised while serving a request carries
them without threading them through the call stack.
"""

import re
import uuid
from contextvars import ContextVar
from typing import Any

_request_context: ContextVar[dict[str, Any]] = ContextVar("request_context", default={})

# /channels/{channel_id}[/sessions/{session_id}]...
_CHANNEL_PATH = re.compile(
    r"^/channels/(?P<channel_id>[^/]+)(?:/sessions/(?P<session_id>[^/]+))?"
)


def generate_correlation_id() -> str:
    """Generate a unique correlation ID for request tracing."""
    return str(uuid.uuid4())


def ids_from_path(path: str) -> dict[str, str]:
    """Extract channel_id and session_id from a request path.

    ``latest`` is a route segment, not a session id, and is left out.
    """
    match = _CHANNEL_PATH.match(path)
    if not match:
        return {}

    ids = {"channel_id": match.group("channel_id")}
    session_id = match.group("session_id")
    if session_id and session_id != "latest":
        ids["session_id"] = session_id
    return ids


def set_request_context(
    request_id: str,
    user_id: str | None = None,
    channel_id: str | None = None,
    session_id: str | None = None,
    **kwargs: Any,
) -> None:
    """
    Set the request context for the current async context.

    Args:
        request_id: Correlation ID for request tracing
        user_id: Caller id, ``anonymous`` when unauthenticated
        channel_id: Channel addressed by the request, if any
        session_id: Session addressed by the request, if any
        **kwargs: Additional context properties
    """
    _request_context.set(
        {
            "request_id": request_id,
            "user_id": user_id or "anonymous",
            "channel_id": channel_id,
            "session_id": session_id,
            **kwargs,
        }
    )


def get_request_context() -> dict[str, Any]:
    """Get the current request context."""
    return _request_context.get()


def clear_request_context() -> None:
    """Clear the request context for the current async context."""
    _request_context.set({})
