"""Document store boundary.

The core treats the store as a schema-less document database addressed by
slash-separated paths (``channels/{cid}/sessions/{sid}``). Adapters provide
per-document CRUD, atomic per-document merges and push subscriptions on
documents and queries.
"""

import uuid
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from .subscription import Subscription


class _ServerTimestamp:
    """Sentinel replaced by the store's clock at write time."""

    _instance: "_ServerTimestamp | None" = None

    def __new__(cls) -> "_ServerTimestamp":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


def document_path(*segments: str) -> str:
    """Join path segments into a document or collection path."""
    for segment in segments:
        if not segment or "/" in segment:
            raise ValueError(f"Invalid path segment: {segment!r}")
    return "/".join(segments)


def split_path(path: str) -> tuple[str, str]:
    """Split a document path into (collection path, document id)."""
    collection, _, doc_id = path.rpartition("/")
    if not collection or not doc_id:
        raise ValueError(f"Not a document path: {path!r}")
    return collection, doc_id


def new_document_id() -> str:
    """Generate an id for an added document."""
    return uuid.uuid4().hex


@dataclass(frozen=True)
class DocumentSnapshot:
    """Point-in-time copy of one document."""

    path: str
    data: dict[str, Any] | None

    @property
    def id(self) -> str:
        return split_path(self.path)[1]

    @property
    def exists(self) -> bool:
        return self.data is not None


@dataclass(frozen=True)
class FieldFilter:
    """Equality filter on a top-level field."""

    field: str
    value: Any


@dataclass(frozen=True)
class Query:
    """Query over the direct children of one collection.

    ``limit_to_last`` keeps the last ``limit`` documents of the ordering
    while still returning them in ascending order.
    """

    collection: str
    filters: tuple[FieldFilter, ...] = field(default_factory=tuple)
    order_by: str | None = None
    descending: bool = False
    limit: int | None = None
    limit_to_last: bool = False

    def where(self, field_name: str, value: Any) -> "Query":
        return Query(
            collection=self.collection,
            filters=(*self.filters, FieldFilter(field_name, value)),
            order_by=self.order_by,
            descending=self.descending,
            limit=self.limit,
            limit_to_last=self.limit_to_last,
        )


SnapshotCallback = Callable[[DocumentSnapshot], None]
QueryCallback = Callable[[list[DocumentSnapshot]], None]
ErrorCallback = Callable[[Exception], None]


class DocumentStore(ABC):
    """Abstract async document store.

    Writes are applied atomically per document. Subscriptions invoke their
    callback once with the current state before ``watch_*`` returns and then
    once per observed change, in the order the store applied the writes.
    Rapid successive writes may be coalesced into one callback.
    """

    @abstractmethod
    async def connect(self) -> None:
        """Open connections and prepare storage."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Close connections and drop all subscriptions."""

    @abstractmethod
    async def ping(self) -> bool:
        """Return True when the store answers."""

    @abstractmethod
    async def get(self, path: str) -> DocumentSnapshot:
        """Read one document; a missing document has ``data=None``."""

    @abstractmethod
    async def add(self, collection: str, data: dict[str, Any]) -> str:
        """Create a document with a generated id and return the id."""

    @abstractmethod
    async def create(self, path: str, data: dict[str, Any]) -> None:
        """Create a document, raising AlreadyExists if the path is taken.

        The existence check and the write are a single atomic step.
        """

    @abstractmethod
    async def set(self, path: str, data: dict[str, Any], merge: bool = False) -> None:
        """Write a document, replacing it or merging top-level fields."""

    @abstractmethod
    async def update(self, path: str, data: dict[str, Any]) -> None:
        """Merge top-level fields into an existing document.

        Raises DocumentNotFound if the document does not exist.
        """

    @abstractmethod
    async def query(self, query: Query) -> list[DocumentSnapshot]:
        """Run a one-shot query."""

    @abstractmethod
    async def watch_document(
        self,
        path: str,
        on_next: SnapshotCallback,
        on_error: ErrorCallback | None = None,
    ) -> Subscription:
        """Subscribe to one document."""

    @abstractmethod
    async def watch_query(
        self,
        query: Query,
        on_next: QueryCallback,
        on_error: ErrorCallback | None = None,
    ) -> Subscription:
        """Subscribe to the result set of a query."""
