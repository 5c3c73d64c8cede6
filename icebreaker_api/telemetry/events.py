"""
Telemetry Event Names

Centralized event name constants following the naming convention:
{domain}_{entity}_{action}
"""


class TelemetryEvents:
    """Centralized telemetry event names."""

    # Request lifecycle
    REQUEST_RECEIVED = "request_received"
    REQUEST_COMPLETED = "request_completed"
    REQUEST_FAILED = "request_failed"

    # Channels and membership
    CHANNEL_CREATED = "channel_created"
    CHANNEL_RENAMED = "channel_renamed"
    MEMBER_JOINED = "member_joined"
    MEMBER_INTERESTS_UPDATED = "member_interests_updated"

    # Session lifecycle
    SESSION_CREATED = "session_created"
    SESSION_STARTED = "session_started"
    SESSION_ENDED = "session_ended"
    SESSION_START_REJECTED = "session_start_rejected"

    # Messaging
    MESSAGE_SENT = "message_sent"
    MESSAGE_REJECTED = "message_rejected"

    # Activity prompts
    PROMPT_SELECTED = "prompt_selected"
    PROMPT_FALLBACK = "prompt_fallback"

    # Participation
    PARTICIPATION_RECORDED = "participation_recorded"

    # Live views
    VIEW_MODE_CHANGED = "view_mode_changed"
    SUBSCRIPTION_FAILED = "subscription_failed"

    # Catalogs
    CATALOG_SEEDED = "catalog_seeded"

    # Health and monitoring
    HEALTH_CHECK_COMPLETED = "health_check_completed"
    HEALTH_CHECK_FAILED = "health_check_failed"

    # Error events
    STORE_ERROR = "store_error"
    AUTHENTICATION_FAILED = "authentication_failed"
    PERMISSION_DENIED = "permission_denied"

    # Application lifecycle
    APP_STARTED = "app_started"
    APP_STOPPED = "app_stopped"
