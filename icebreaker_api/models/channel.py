"""Channel, member and user profile models."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .document import DocumentModel


class Channel(DocumentModel):
    """A named group owned by one user, containing members and sessions."""

    id: str
    name: str = Field(..., min_length=1)
    owner_id: str = Field(..., min_length=1, description="User who created the channel")
    created_at: datetime | None = None

    @classmethod
    def _document_fields(cls, doc_id: str, data: dict[str, Any], **keys: str) -> dict[str, Any]:
        return {
            "id": doc_id,
            "name": data.get("name"),
            "owner_id": data.get("ownerId"),
            "created_at": data.get("createdAt"),
        }

    def to_document(self) -> dict[str, Any]:
        return {"name": self.name, "ownerId": self.owner_id, "createdAt": self.created_at}


class Member(DocumentModel):
    """A user's membership in a channel."""

    channel_id: str
    user_id: str
    display_name: str = ""
    bio: str = ""
    interests: list[str] = Field(default_factory=list)
    joined_at: datetime | None = None

    @classmethod
    def _document_fields(cls, doc_id: str, data: dict[str, Any], **keys: str) -> dict[str, Any]:
        return {
            "channel_id": keys.get("channel_id"),
            "user_id": doc_id,
            "display_name": data.get("displayName") or "",
            "bio": data.get("bio") or "",
            "interests": data.get("interests") or [],
            "joined_at": data.get("joinedAt"),
        }

    def to_document(self) -> dict[str, Any]:
        return {
            "displayName": self.display_name,
            "bio": self.bio,
            "interests": list(self.interests),
            "joinedAt": self.joined_at,
        }


class LastSession(BaseModel):
    """Bookmark of the session a user most recently opened."""

    channel_id: str
    session_id: str
    updated_at: datetime | None = None


class UserProfile(DocumentModel):
    """Per-user document holding global interests and the last-session bookmark."""

    user_id: str
    interests: list[str] = Field(default_factory=list)
    last_session: LastSession | None = None

    @classmethod
    def _document_fields(cls, doc_id: str, data: dict[str, Any], **keys: str) -> dict[str, Any]:
        last = data.get("lastSession")
        return {
            "user_id": doc_id,
            "interests": data.get("interests") or [],
            "last_session": (
                {
                    "channel_id": last.get("channelId"),
                    "session_id": last.get("sessionId"),
                    "updated_at": last.get("updatedAt"),
                }
                if isinstance(last, dict)
                else None
            ),
        }

    def to_document(self) -> dict[str, Any]:
        document: dict[str, Any] = {"interests": list(self.interests)}
        if self.last_session:
            document["lastSession"] = {
                "channelId": self.last_session.channel_id,
                "sessionId": self.last_session.session_id,
                "updatedAt": self.last_session.updated_at,
            }
        return document


class InterestTag(DocumentModel):
    """Catalog entry a member can pick as an interest."""

    id: str
    name: str = Field(..., min_length=1)
    emoji: str = ""
    category: str = "Other"
    order: int = 999

    @classmethod
    def _document_fields(cls, doc_id: str, data: dict[str, Any], **keys: str) -> dict[str, Any]:
        return {
            "id": doc_id,
            "name": data.get("name"),
            "emoji": data.get("emoji") or "",
            "category": data.get("category") or "Other",
            "order": data.get("order", 999),
        }

    def to_document(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "emoji": self.emoji,
            "category": self.category,
            "order": self.order,
        }


class InterestTagGroup(BaseModel):
    """Interest tags of one catalog section."""

    category: str
    tags: list[InterestTag]
