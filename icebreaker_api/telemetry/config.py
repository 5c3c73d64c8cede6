"""
Telemetry Configuration

Connection and identity settings for Application Insights plus the
in-memory development log used when no connection string is configured.
"""

from pydantic_settings import BaseSettings


class TelemetryConfig(BaseSettings):
    """Telemetry configuration loaded from TELEMETRY_* environment variables."""

    # Connection
    app_insights_connection_string: str | None = None
    enabled: bool = True

    # Identity attached to every event
    app_id: str = "icebreaker-api"
    environment: str = "development"

    # Development log
    enable_dev_logger: bool = True
    dev_logger_max_events: int = 1000
    dev_logger_max_size_mb: int = 10

    # Stream requests stay open for minutes; only track them once they close
    track_stream_requests: bool = True

    model_config = {
        "env_prefix": "TELEMETRY_",
        "env_file": ".env",
        "extra": "ignore",
    }


_config: TelemetryConfig | None = None


def get_telemetry_config() -> TelemetryConfig:
    """Get the global telemetry configuration instance."""
    global _config
    if _config is None:
        _config = TelemetryConfig()
    return _config


def reset_telemetry_config() -> None:
    """Drop the cached configuration so the environment is read again."""
    global _config
    _config = None
