"""Data models for the ice-breaker service."""

from .activity import ActivityPrompt, ActivitySelection
from .channel import Channel, InterestTag, InterestTagGroup, LastSession, Member, UserProfile
from .document import DocumentModel
from .identity import Identity
from .message import Message
from .participation import HistoryEntry, ParticipationRecord, UserStats
from .requests import (
    ChannelCreateRequest,
    ChannelRenameRequest,
    InterestsUpdateRequest,
    MemberJoinRequest,
    MessageRequest,
)
from .responses import (
    ChannelListResponse,
    HealthResponse,
    HistoryResponse,
    InterestTagsResponse,
    MemberListResponse,
    MessageListResponse,
    MessageSendResponse,
    VersionResponse,
)
from .session import Session, SessionStatus
from .view import DisplayMode, HostState, HostView, Navigation, SessionView

__all__ = [
    "DocumentModel",
    # Channel models
    "Channel",
    "Member",
    "UserProfile",
    "LastSession",
    "InterestTag",
    "InterestTagGroup",
    # Session models
    "Session",
    "SessionStatus",
    "Message",
    "ActivityPrompt",
    "ActivitySelection",
    "ParticipationRecord",
    "HistoryEntry",
    "UserStats",
    "Identity",
    # View models
    "DisplayMode",
    "HostState",
    "HostView",
    "Navigation",
    "SessionView",
    # Request models
    "ChannelCreateRequest",
    "ChannelRenameRequest",
    "MemberJoinRequest",
    "InterestsUpdateRequest",
    "MessageRequest",
    # Response models
    "ChannelListResponse",
    "MemberListResponse",
    "MessageListResponse",
    "MessageSendResponse",
    "InterestTagsResponse",
    "HistoryResponse",
    "HealthResponse",
    "VersionResponse",
]
