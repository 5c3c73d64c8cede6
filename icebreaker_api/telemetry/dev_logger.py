"""
Development Logger

Keeps the most recent telemetry events in a bounded in-memory buffer so they
can be inspected locally and in tests without Application Insights.
"""

import json
import logging
from collections import deque
from datetime import UTC, datetime
from typing import Any

from .config import get_telemetry_config

logger = logging.getLogger(__name__)

_debug_enabled = False
_event_buffer: deque[dict[str, Any]] = deque()
_event_sizes: deque[int] = deque()
_current_size_bytes = 0


def set_debug(enabled: bool) -> None:
    """Also write every event to the application log at DEBUG level."""
    global _debug_enabled
    _debug_enabled = enabled


def is_debug_enabled() -> bool:
    return _debug_enabled


def log_dev_event(event_name: str, properties: dict[str, Any]) -> None:
    """
    Record a telemetry event in the development buffer.

    The oldest events are dropped once either the event count or the byte
    size limit from the telemetry configuration is reached.

    Args:
        event_name: Name of the event
        properties: Event properties dictionary
    """
    global _current_size_bytes

    config = get_telemetry_config()
    if not config.enable_dev_logger:
        return

    event = {
        "timestamp": datetime.now(UTC).isoformat(),
        "event_name": event_name,
        "properties": properties,
    }
    event_size = len(json.dumps(event, default=str).encode("utf-8"))
    max_size_bytes = config.dev_logger_max_size_mb * 1024 * 1024

    while _event_buffer and (
        len(_event_buffer) >= config.dev_logger_max_events
        or _current_size_bytes + event_size > max_size_bytes
    ):
        _event_buffer.popleft()
        _current_size_bytes -= _event_sizes.popleft()

    _event_buffer.append(event)
    _event_sizes.append(event_size)
    _current_size_bytes += event_size

    if _debug_enabled:
        logger.debug(f"[Telemetry] {event_name}: {json.dumps(properties, default=str)}")


def export_dev_logs() -> str:
    """Export all buffered events as JSON Lines."""
    return "\n".join(json.dumps(event, default=str) for event in _event_buffer)


def clear_dev_logs() -> None:
    """Clear all buffered events."""
    global _current_size_bytes
    _event_buffer.clear()
    _event_sizes.clear()
    _current_size_bytes = 0


def get_dev_logs(event_name: str | None = None) -> list[dict[str, Any]]:
    """
    Get buffered events, oldest first.

    Args:
        event_name: Only return events with this name

    Returns:
        List of event dictionaries
    """
    if event_name is None:
        return list(_event_buffer)
    return [event for event in _event_buffer if event["event_name"] == event_name]
