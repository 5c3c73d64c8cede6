"""Session data models."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import Field

from .document import DocumentModel


class SessionStatus(str, Enum):
    """Session status enumeration.

    Transitions only move forward: pending -> active -> end, or active -> end.
    """

    PENDING = "pending"
    ACTIVE = "active"
    END = "end"


class Session(DocumentModel):
    """A time-boxed ice-breaker run inside a channel."""

    id: str
    channel_id: str
    owner_id: str = Field(..., min_length=1)
    status: SessionStatus
    created_at: datetime | None = Field(default=None, description="Server-assigned")
    ended_at: datetime | None = None
    tags: list[str] = Field(default_factory=list, description="Set at most once")
    activity_id: str | None = None
    activity_category: str | None = None
    activity_title: str | None = None
    activity_prompt: str | None = None

    @property
    def has_activity(self) -> bool:
        return bool(self.activity_title or self.activity_prompt)

    @property
    def is_live(self) -> bool:
        return self.status == SessionStatus.ACTIVE

    @classmethod
    def _document_fields(cls, doc_id: str, data: dict[str, Any], **keys: str) -> dict[str, Any]:
        return {
            "id": doc_id,
            "channel_id": keys.get("channel_id"),
            "owner_id": data.get("ownerId"),
            "status": data.get("status"),
            "created_at": data.get("createdAt"),
            "ended_at": data.get("endedAt"),
            "tags": data.get("tags") or [],
            "activity_id": data.get("activityId"),
            "activity_category": data.get("activityCategory"),
            "activity_title": data.get("activityTitle"),
            "activity_prompt": data.get("activityPrompt"),
        }

    def to_document(self) -> dict[str, Any]:
        document: dict[str, Any] = {
            "ownerId": self.owner_id,
            "status": self.status.value,
            "createdAt": self.created_at,
            "endedAt": self.ended_at,
            "tags": list(self.tags),
        }
        if self.has_activity:
            document.update(
                {
                    "activityId": self.activity_id,
                    "activityCategory": self.activity_category,
                    "activityTitle": self.activity_title,
                    "activityPrompt": self.activity_prompt,
                }
            )
        return document
