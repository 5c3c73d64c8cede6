"""Base class for records stored as documents."""

from typing import Any, Self

from pydantic import BaseModel, ValidationError

from ..errors import InvalidDocument


class DocumentModel(BaseModel):
    """Record with an explicit mapping to and from its stored document.

    Stored documents use camelCase field names; Python records use
    snake_case. Subclasses implement ``_document_fields`` and ``to_document``.
    """

    @classmethod
    def _document_fields(cls, doc_id: str, data: dict[str, Any], **keys: str) -> dict[str, Any]:
        raise NotImplementedError

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any], **keys: str) -> Self:
        """Validate a stored document into a record.

        Args:
            doc_id: Document id (last path segment)
            data: Stored document fields
            **keys: Parent keys taken from the document path (channel_id, ...)

        Raises:
            InvalidDocument: If the document does not match the record shape
        """
        try:
            return cls.model_validate(cls._document_fields(doc_id, data, **keys))
        except ValidationError as e:
            raise InvalidDocument(
                f"Invalid {cls.__name__} document {doc_id}: {e.error_count()} validation error(s)"
            ) from e

    def to_document(self) -> dict[str, Any]:
        raise NotImplementedError
