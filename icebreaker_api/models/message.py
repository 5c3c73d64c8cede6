"""Chat message model."""

from datetime import datetime
from typing import Any

from pydantic import Field

from .document import DocumentModel


class Message(DocumentModel):
    """One immutable chat line in a session."""

    id: str
    text: str = Field(..., min_length=1)
    author_id: str = Field(..., min_length=1)
    author_display_name: str = ""
    created_at: datetime | None = None

    @classmethod
    def _document_fields(cls, doc_id: str, data: dict[str, Any], **keys: str) -> dict[str, Any]:
        text = data.get("text")
        return {
            "id": doc_id,
            "text": text.strip() if isinstance(text, str) else text,
            "author_id": data.get("authorId"),
            "author_display_name": data.get("authorDisplayName") or "",
            "created_at": data.get("createdAt"),
        }

    def to_document(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "authorId": self.author_id,
            "authorDisplayName": self.author_display_name,
            "createdAt": self.created_at,
        }
