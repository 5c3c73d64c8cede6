"""Activity prompt catalog models."""

from typing import Any

from pydantic import BaseModel, Field

from .document import DocumentModel

FALLBACK_TITLE = "Ice-breaker prompt"
FALLBACK_PROMPT = "Share something about yourself or your interests!"


class ActivityPrompt(DocumentModel):
    """Catalog entry in the read-only ``activities`` collection."""

    id: str
    category: str = Field(..., min_length=1)
    title: str = FALLBACK_TITLE
    prompt: str = "Share something about your interests!"

    @classmethod
    def _document_fields(cls, doc_id: str, data: dict[str, Any], **keys: str) -> dict[str, Any]:
        fields: dict[str, Any] = {"id": doc_id, "category": data.get("category")}
        if data.get("title"):
            fields["title"] = data["title"]
        if data.get("prompt"):
            fields["prompt"] = data["prompt"]
        return fields

    def to_document(self) -> dict[str, Any]:
        return {"category": self.category, "title": self.title, "prompt": self.prompt}


class ActivitySelection(BaseModel):
    """Prompt shown to a session's participants."""

    title: str
    prompt: str
    category: str | None = None
    activity_id: str | None = None
    label: str | None = Field(default=None, description="Interest label the category came from")
    fallback: bool = False

    @classmethod
    def generic(
        cls, prompt: str = FALLBACK_PROMPT, label: str | None = None
    ) -> "ActivitySelection":
        """Fallback prompt used when no catalog entry applies."""
        return cls(title=FALLBACK_TITLE, prompt=prompt, label=label, fallback=True)
