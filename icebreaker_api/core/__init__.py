"""Core business logic for channels, sessions and live views."""

from .activity_selector import ActivityPromptSelector
from .catalog import seed_catalogs
from .channels import ChannelRegistry
from .hosting import SessionHost
from .local_cache import InterestCache, interest_cache
from .membership import MembershipRegistry
from .message_channel import MessageChannel
from .orchestrator import (
    IdentityChanged,
    MessagesObserved,
    ObservationFailed,
    SessionLifecycle,
    SessionObserved,
    SessionOrchestrator,
)
from .participation import ParticipationLedger, SessionHistory
from .session_repository import SessionRepository

__all__ = [
    "SessionRepository",
    "ChannelRegistry",
    "MembershipRegistry",
    "ActivityPromptSelector",
    "MessageChannel",
    "ParticipationLedger",
    "SessionHistory",
    "SessionHost",
    "SessionOrchestrator",
    "SessionLifecycle",
    "SessionObserved",
    "MessagesObserved",
    "IdentityChanged",
    "ObservationFailed",
    "InterestCache",
    "interest_cache",
    "seed_catalogs",
]
