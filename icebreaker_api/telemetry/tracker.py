"""
Application Insights Tracker

Sends custom events and exceptions to Azure Application Insights through the
opencensus log exporter. Every event is also written to the development log.
"""

import logging
from typing import Any

from opencensus.ext.azure.log_exporter import AzureLogHandler

from .config import get_telemetry_config
from .context import get_request_context
from .dev_logger import log_dev_event
from .events import TelemetryEvents

logger = logging.getLogger(__name__)

_app_insights_logger: logging.Logger | None = None


def _event_properties(properties: dict[str, Any] | None) -> dict[str, Any]:
    config = get_telemetry_config()
    return {
        **get_request_context(),
        "app_id": config.app_id,
        "environment": config.environment,
        **(properties or {}),
    }


def initialize_telemetry() -> logging.Logger | None:
    """
    Initialize Application Insights telemetry.

    Call this once at application startup.

    Returns:
        Logger instance if successful, None if disabled or connection string missing
    """
    global _app_insights_logger

    if _app_insights_logger is not None:
        return _app_insights_logger

    config = get_telemetry_config()

    if not config.enabled:
        logger.info("[Telemetry] Telemetry disabled by configuration")
        return None

    if not config.app_insights_connection_string:
        logger.warning(
            "[Telemetry] No Application Insights connection string found. "
            "Events go to the development log only."
        )
        return None

    try:
        insights_logger = logging.getLogger("icebreaker_telemetry")
        insights_logger.setLevel(logging.INFO)
        insights_logger.propagate = False

        azure_handler = AzureLogHandler(connection_string=config.app_insights_connection_string)

        def add_context(envelope):
            envelope.data.baseData.properties.update(get_request_context())
            envelope.data.baseData.properties["app_id"] = config.app_id
            envelope.data.baseData.properties["environment"] = config.environment
            return True

        azure_handler.add_telemetry_processor(add_context)
        insights_logger.addHandler(azure_handler)
    except ValueError as e:
        # Malformed connection string
        logger.error(f"[Telemetry] Failed to initialize Application Insights: {e}")
        return None

    _app_insights_logger = insights_logger
    logger.info("[Telemetry] Application Insights initialized successfully")

    track_event(
        TelemetryEvents.APP_STARTED,
        {"app_id": config.app_id, "environment": config.environment},
    )
    return insights_logger


def get_app_insights() -> logging.Logger | None:
    """Get the Application Insights logger, None when not initialized."""
    return _app_insights_logger


def track_event(name: str, properties: dict[str, Any] | None = None) -> None:
    """
    Track a custom event.

    Request context (request_id, user_id, channel_id, session_id) and the app
    identity are merged in automatically; explicit properties win.

    Args:
        name: Event name, one of TelemetryEvents
        properties: Additional event properties
    """
    merged_properties = _event_properties(properties)

    log_dev_event(name, merged_properties)

    if _app_insights_logger:
        _app_insights_logger.info(name, extra={"custom_dimensions": merged_properties})


def track_exception(
    exception: Exception, properties: dict[str, Any] | None = None, level: str = "ERROR"
) -> None:
    """
    Track an exception.

    Args:
        exception: Exception instance
        properties: Additional error properties
        level: Log level (ERROR, WARNING, INFO)
    """
    merged_properties = _event_properties(
        {
            "error_type": type(exception).__name__,
            "error_message": str(exception),
            **(properties or {}),
        }
    )

    log_dev_event("exception", merged_properties)

    if _app_insights_logger:
        _app_insights_logger.log(
            getattr(logging, level.upper(), logging.ERROR),
            f"Exception: {type(exception).__name__}",
            exc_info=exception,
            extra={"custom_dimensions": merged_properties},
        )


def flush_telemetry() -> None:
    """Flush pending telemetry (call before shutdown)."""
    if _app_insights_logger:
        track_event(TelemetryEvents.APP_STOPPED)
        for handler in _app_insights_logger.handlers:
            handler.flush()
