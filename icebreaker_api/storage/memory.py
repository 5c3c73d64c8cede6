"""In-process document store with synchronous push delivery."""

import copy
import itertools
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from ..errors import AlreadyExists, DocumentNotFound, TransientNetworkError
from .base import (
    SERVER_TIMESTAMP,
    DocumentSnapshot,
    DocumentStore,
    ErrorCallback,
    Query,
    QueryCallback,
    SnapshotCallback,
    new_document_id,
    split_path,
)
from .subscription import Subscription

logger = logging.getLogger(__name__)

_MISSING = object()


@dataclass
class _DocumentWatcher:
    path: str
    on_next: SnapshotCallback
    on_error: ErrorCallback | None
    last: Any = _MISSING


@dataclass
class _QueryWatcher:
    query: Query
    on_next: QueryCallback
    on_error: ErrorCallback | None
    last: Any = field(default=_MISSING)


class MemoryDocumentStore(DocumentStore):
    """Dictionary-backed store for tests and single-process deployments.

    Every write runs to completion without yielding, so each write is atomic
    and create-if-absent is race free. Watchers are notified synchronously
    after the write, in registration order.
    """

    def __init__(self) -> None:
        self._documents: dict[str, dict[str, Any]] = {}
        self._document_watchers: dict[int, _DocumentWatcher] = {}
        self._query_watchers: dict[int, _QueryWatcher] = {}
        self._ids = itertools.count(1)
        self._last_timestamp: datetime | None = None
        self._connected = False

    async def connect(self) -> None:
        self._connected = True
        logger.info("Memory document store connected")

    async def disconnect(self) -> None:
        """Disconnect and report the loss to every live watcher."""
        if not self._connected:
            return

        self._connected = False
        error = TransientNetworkError("Document store disconnected")
        watchers = [*self._document_watchers.values(), *self._query_watchers.values()]
        self._document_watchers.clear()
        self._query_watchers.clear()
        for watcher in watchers:
            if watcher.on_error is not None:
                self._safe_call(watcher.on_error, error)
        logger.info("Memory document store disconnected")

    async def ping(self) -> bool:
        return self._connected

    # Reads
    async def get(self, path: str) -> DocumentSnapshot:
        self._ensure_connected()
        data = self._documents.get(path)
        return DocumentSnapshot(path=path, data=copy.deepcopy(data))

    async def query(self, query: Query) -> list[DocumentSnapshot]:
        self._ensure_connected()
        return self._run_query(query)

    # Writes
    async def add(self, collection: str, data: dict[str, Any]) -> str:
        self._ensure_connected()
        doc_id = new_document_id()
        path = f"{collection}/{doc_id}"
        self._documents[path] = self._resolve(data)
        self._notify(path)
        return doc_id

    async def create(self, path: str, data: dict[str, Any]) -> None:
        self._ensure_connected()
        split_path(path)
        if path in self._documents:
            raise AlreadyExists(f"Document already exists: {path}")
        self._documents[path] = self._resolve(data)
        self._notify(path)

    async def set(self, path: str, data: dict[str, Any], merge: bool = False) -> None:
        self._ensure_connected()
        split_path(path)
        resolved = self._resolve(data)
        if merge and path in self._documents:
            self._documents[path].update(resolved)
        else:
            self._documents[path] = resolved
        self._notify(path)

    async def update(self, path: str, data: dict[str, Any]) -> None:
        self._ensure_connected()
        if path not in self._documents:
            raise DocumentNotFound(f"Document not found: {path}")
        self._documents[path].update(self._resolve(data))
        self._notify(path)

    # Subscriptions
    async def watch_document(
        self,
        path: str,
        on_next: SnapshotCallback,
        on_error: ErrorCallback | None = None,
    ) -> Subscription:
        self._ensure_connected()
        watcher_id = next(self._ids)
        watcher = _DocumentWatcher(path=path, on_next=on_next, on_error=on_error)
        self._document_watchers[watcher_id] = watcher
        self._deliver_document(watcher)
        return Subscription(
            f"document:{path}",
            on_cancel=lambda: self._document_watchers.pop(watcher_id, None),
        )

    async def watch_query(
        self,
        query: Query,
        on_next: QueryCallback,
        on_error: ErrorCallback | None = None,
    ) -> Subscription:
        self._ensure_connected()
        watcher_id = next(self._ids)
        watcher = _QueryWatcher(query=query, on_next=on_next, on_error=on_error)
        self._query_watchers[watcher_id] = watcher
        self._deliver_query(watcher)
        return Subscription(
            f"query:{query.collection}",
            on_cancel=lambda: self._query_watchers.pop(watcher_id, None),
        )

    # Internals
    def _ensure_connected(self) -> None:
        if not self._connected:
            raise TransientNetworkError("Document store not connected")

    def _server_now(self) -> datetime:
        """Strictly increasing clock so server timestamps totally order writes."""
        now = datetime.now(UTC)
        if self._last_timestamp is not None and now <= self._last_timestamp:
            now = self._last_timestamp + timedelta(microseconds=1)
        self._last_timestamp = now
        return now

    def _resolve(self, data: dict[str, Any]) -> dict[str, Any]:
        now: datetime | None = None

        def resolve(value: Any) -> Any:
            nonlocal now
            if value is SERVER_TIMESTAMP:
                if now is None:
                    now = self._server_now()
                return now
            if isinstance(value, dict):
                return {k: resolve(v) for k, v in value.items()}
            if isinstance(value, list):
                return [resolve(v) for v in value]
            return copy.deepcopy(value)

        return {key: resolve(value) for key, value in data.items()}

    def _run_query(self, query: Query) -> list[DocumentSnapshot]:
        matches = []
        for path, data in self._documents.items():
            collection, _ = split_path(path)
            if collection != query.collection:
                continue
            if any(data.get(f.field, _MISSING) != f.value for f in query.filters):
                continue
            if query.order_by is not None and data.get(query.order_by) is None:
                continue
            matches.append((path, data))

        if query.order_by is not None:
            matches.sort(key=lambda item: item[1][query.order_by], reverse=query.descending)
        else:
            matches.sort(key=lambda item: item[0], reverse=query.descending)

        if query.limit is not None:
            matches = matches[-query.limit :] if query.limit_to_last else matches[: query.limit]

        return [DocumentSnapshot(path=path, data=copy.deepcopy(data)) for path, data in matches]

    def _notify(self, path: str) -> None:
        collection, _ = split_path(path)
        for watcher in list(self._document_watchers.values()):
            if watcher.path == path:
                self._deliver_document(watcher)
        for watcher in list(self._query_watchers.values()):
            if watcher.query.collection == collection:
                self._deliver_query(watcher)

    def _deliver_document(self, watcher: _DocumentWatcher) -> None:
        data = self._documents.get(watcher.path)
        if watcher.last is not _MISSING and watcher.last == data:
            return
        watcher.last = copy.deepcopy(data)
        self._safe_call(
            watcher.on_next, DocumentSnapshot(path=watcher.path, data=copy.deepcopy(data))
        )

    def _deliver_query(self, watcher: _QueryWatcher) -> None:
        results = self._run_query(watcher.query)
        fingerprint = [(snap.path, snap.data) for snap in results]
        if watcher.last is not _MISSING and watcher.last == fingerprint:
            return
        watcher.last = copy.deepcopy(fingerprint)
        self._safe_call(watcher.on_next, results)

    @staticmethod
    def _safe_call(callback: Any, payload: Any) -> None:
        try:
            callback(payload)
        except Exception as e:
            # A failing listener must not abort the writer
            logger.error(f"Subscription callback failed: {e}", exc_info=True)
