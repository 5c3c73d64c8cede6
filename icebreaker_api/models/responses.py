"""Response models for API endpoints."""

from pydantic import BaseModel

from .channel import Channel, InterestTagGroup, Member
from .message import Message
from .participation import HistoryEntry


class ChannelListResponse(BaseModel):
    """Response for listing channels."""

    channels: list[Channel]
    total: int


class MemberListResponse(BaseModel):
    """Response for listing channel members."""

    members: list[Member]
    total: int


class MessageListResponse(BaseModel):
    """Response for listing session messages."""

    messages: list[Message]
    total: int


class MessageSendResponse(BaseModel):
    """Response for a send attempt.

    ``sent`` is False when the message was ignored (blank text, anonymous
    caller or a session that is not live).
    """

    sent: bool
    message: Message | None = None


class InterestTagsResponse(BaseModel):
    """Interest catalog grouped into sections."""

    groups: list[InterestTagGroup]


class HistoryResponse(BaseModel):
    """Response for a user's session history."""

    entries: list[HistoryEntry]
    total: int


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    uptime: str
    store_connected: bool


class VersionResponse(BaseModel):
    """Version information response."""

    service_version: str
    document_store: str
