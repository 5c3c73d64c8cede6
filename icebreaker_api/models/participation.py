"""Participation ledger and session history models."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from .document import DocumentModel
from .session import SessionStatus


class ParticipationRecord(DocumentModel):
    """Evidence that a user joined a session, written at most once."""

    user_id: str
    channel_id: str
    session_id: str
    joined_at: datetime | None = None

    @classmethod
    def _document_fields(cls, doc_id: str, data: dict[str, Any], **keys: str) -> dict[str, Any]:
        return {
            "user_id": keys.get("user_id"),
            "channel_id": data.get("channelId"),
            "session_id": data.get("sessionId") or doc_id,
            "joined_at": data.get("joinedAt"),
        }

    def to_document(self) -> dict[str, Any]:
        return {
            "channelId": self.channel_id,
            "sessionId": self.session_id,
            "joinedAt": self.joined_at,
        }


class HistoryEntry(BaseModel):
    """A past session resolved against its session and channel documents."""

    channel_id: str
    channel_name: str
    session_id: str
    status: SessionStatus
    joined_at: datetime | None = None
    ended_at: datetime | None = None
    tags: list[str] = Field(default_factory=list, description="First three session tags")
    view: Literal["summary", "session"]


class UserStats(BaseModel):
    """Counters shown on a user's profile."""

    sessions_joined: int = 0
    channels_hosted: int = 0
