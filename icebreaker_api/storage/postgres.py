"""Document store on PostgreSQL via asyncpg.

Documents live in one JSONB table. Subscriptions are served from a dedicated
LISTEN connection: a trigger publishes the path of every written document,
and a single dispatcher task re-reads affected documents and queries so
callbacks fire in commit order.
"""

import asyncio
import contextlib
import itertools
import json
import logging
import re
from collections.abc import AsyncIterator
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import asyncpg

from ..config import settings
from ..errors import (
    AlreadyExists,
    DocumentNotFound,
    PermissionDenied,
    StoreError,
    TransientNetworkError,
)
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
from .schema import INIT_SCHEMA, NOTIFY_CHANNEL
from .subscription import Subscription

logger = logging.getLogger(__name__)

# Fixed-width UTC timestamps sort correctly as JSON strings
_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%f+00:00"
_TIMESTAMP_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{6}\+00:00$")


def contains_server_timestamp(value: Any) -> bool:
    """Whether a payload needs the server clock."""
    if value is SERVER_TIMESTAMP:
        return True
    if isinstance(value, dict):
        return any(contains_server_timestamp(v) for v in value.values())
    if isinstance(value, list):
        return any(contains_server_timestamp(v) for v in value)
    return False


def encode_value(value: Any, now: datetime | None = None) -> Any:
    """Convert a document value into its JSON representation."""
    if value is SERVER_TIMESTAMP:
        if now is None:
            raise ValueError("SERVER_TIMESTAMP requires a server clock reading")
        value = now
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC).strftime(_TIMESTAMP_FORMAT)
    if isinstance(value, dict):
        return {k: encode_value(v, now) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [encode_value(v, now) for v in value]
    return value


def decode_value(value: Any) -> Any:
    """Convert a JSON value read from the table back into document values."""
    if isinstance(value, str) and _TIMESTAMP_PATTERN.match(value):
        return datetime.fromisoformat(value)
    if isinstance(value, dict):
        return {k: decode_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [decode_value(v) for v in value]
    return value


def encode_document(data: dict[str, Any], now: datetime | None = None) -> str:
    """Serialize a document payload for a JSONB parameter."""
    return json.dumps(encode_value(data, now))


def decode_document(raw: Any) -> dict[str, Any]:
    """Deserialize a JSONB column into a document payload."""
    data = json.loads(raw) if isinstance(raw, str) else raw
    return decode_value(data)


def build_query_sql(query: Query) -> tuple[str, list[Any], bool]:
    """Build the SELECT for a query.

    Returns (sql, params, reverse) where ``reverse`` tells the caller to
    flip the fetched rows, which is how ``limit_to_last`` keeps ascending
    order while limiting from the end.
    """
    sql = "SELECT path, data FROM documents WHERE collection = $1"
    params: list[Any] = [query.collection]

    for field_filter in query.filters:
        params.extend([field_filter.field, json.dumps(encode_value(field_filter.value))])
        sql += f" AND data -> ${len(params) - 1} = ${len(params)}::jsonb"

    reverse = query.limit_to_last and query.limit is not None
    descending = query.descending != reverse
    direction = "DESC" if descending else "ASC"

    if query.order_by is not None:
        params.append(query.order_by)
        idx = len(params)
        sql += f" AND coalesce(jsonb_typeof(data -> ${idx}), 'null') <> 'null'"
        sql += f" ORDER BY data -> ${idx} {direction}, path {direction}"
    else:
        sql += f" ORDER BY doc_id {direction}"

    if query.limit is not None:
        params.append(query.limit)
        sql += f" LIMIT ${len(params)}"

    return sql, params, reverse


_MISSING = object()


@dataclass
class _Watcher:
    on_next: Any
    on_error: ErrorCallback | None
    path: str | None = None
    query: Query | None = None
    last: Any = _MISSING


class PostgresDocumentStore(DocumentStore):
    """Async PostgreSQL document store using asyncpg."""

    def __init__(self, db_url: str):
        """Initialize store with connection URL."""
        self.db_url = db_url
        self._pool: asyncpg.Pool | None = None
        self._listener: asyncpg.Connection | None = None
        self._notifications: asyncio.Queue[str] = asyncio.Queue()
        self._dispatcher: asyncio.Task | None = None
        self._watchers: dict[int, _Watcher] = {}
        self._ids = itertools.count(1)

    async def connect(self) -> None:
        """Establish connection pool, initialize schema and start listening."""
        if self._pool is not None:
            return

        try:
            self._pool = await asyncpg.create_pool(
                self.db_url,
                min_size=settings.database_pool_min_size,
                max_size=settings.database_pool_max_size,
                command_timeout=60,
            )

            async with self._pool.acquire() as conn:
                await conn.execute(INIT_SCHEMA)

            self._listener = await asyncpg.connect(self.db_url)
            await self._listener.add_listener(NOTIFY_CHANNEL, self._on_notification)
            self._listener.add_termination_listener(self._on_listener_terminated)
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            raise TransientNetworkError(f"Failed to connect to document store: {e}") from e

        self._dispatcher = asyncio.create_task(self._dispatch_notifications())
        logger.info(f"Database connected: {self.db_url.split('@')[-1]}")  # Don't log password

    async def disconnect(self) -> None:
        """Stop listening and close the connection pool."""
        if self._dispatcher:
            self._dispatcher.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._dispatcher
            self._dispatcher = None

        if self._listener:
            listener, self._listener = self._listener, None
            await listener.remove_listener(NOTIFY_CHANNEL, self._on_notification)
            await listener.close()

        self._fail_watchers(TransientNetworkError("Document store disconnected"))

        if self._pool:
            await self._pool.close()
            self._pool = None
            logger.info("Database disconnected")

    async def ping(self) -> bool:
        async with self._connection() as conn:
            return await conn.fetchval("SELECT 1") == 1

    @contextlib.asynccontextmanager
    async def _connection(self) -> AsyncIterator[asyncpg.Connection]:
        if not self._pool:
            raise TransientNetworkError("Database not connected")

        try:
            async with self._pool.acquire() as conn:
                yield conn
        except asyncpg.InsufficientPrivilegeError as e:
            raise PermissionDenied(str(e)) from e
        except (OSError, asyncpg.PostgresConnectionError, asyncpg.InterfaceError) as e:
            raise TransientNetworkError(str(e)) from e

    @staticmethod
    async def _server_now(conn: asyncpg.Connection, data: dict[str, Any]) -> datetime | None:
        if not contains_server_timestamp(data):
            return None
        return await conn.fetchval("SELECT clock_timestamp()")

    # Reads
    async def get(self, path: str) -> DocumentSnapshot:
        async with self._connection() as conn:
            raw = await conn.fetchval("SELECT data FROM documents WHERE path = $1", path)

        return DocumentSnapshot(path=path, data=decode_document(raw) if raw is not None else None)

    async def query(self, query: Query) -> list[DocumentSnapshot]:
        sql, params, reverse = build_query_sql(query)
        async with self._connection() as conn:
            rows = await conn.fetch(sql, *params)

        snapshots = [
            DocumentSnapshot(path=row["path"], data=decode_document(row["data"])) for row in rows
        ]
        if reverse:
            snapshots.reverse()
        return snapshots

    # Writes
    async def add(self, collection: str, data: dict[str, Any]) -> str:
        doc_id = new_document_id()
        await self.create(f"{collection}/{doc_id}", data)
        return doc_id

    async def create(self, path: str, data: dict[str, Any]) -> None:
        collection, doc_id = split_path(path)
        async with self._connection() as conn:
            now = await self._server_now(conn, data)
            result = await conn.execute(
                """
                INSERT INTO documents (path, collection, doc_id, data)
                VALUES ($1, $2, $3, $4::jsonb)
                ON CONFLICT (path) DO NOTHING
                """,
                path,
                collection,
                doc_id,
                encode_document(data, now),
            )

        # Result string is "INSERT 0 N"
        if result and result.split()[-1] == "0":
            raise AlreadyExists(f"Document already exists: {path}")
        logger.debug(f"Created document: {path}")

    async def set(self, path: str, data: dict[str, Any], merge: bool = False) -> None:
        collection, doc_id = split_path(path)
        on_conflict = "documents.data || EXCLUDED.data" if merge else "EXCLUDED.data"
        async with self._connection() as conn:
            now = await self._server_now(conn, data)
            await conn.execute(
                f"""
                INSERT INTO documents (path, collection, doc_id, data)
                VALUES ($1, $2, $3, $4::jsonb)
                ON CONFLICT (path) DO UPDATE SET data = {on_conflict}
                """,
                path,
                collection,
                doc_id,
                encode_document(data, now),
            )

        logger.debug(f"Set document: {path} (merge={merge})")

    async def update(self, path: str, data: dict[str, Any]) -> None:
        async with self._connection() as conn:
            now = await self._server_now(conn, data)
            result = await conn.execute(
                "UPDATE documents SET data = data || $2::jsonb WHERE path = $1",
                path,
                encode_document(data, now),
            )

        if result and result.split()[-1] == "0":
            raise DocumentNotFound(f"Document not found: {path}")
        logger.debug(f"Updated document: {path}")

    # Subscriptions
    async def watch_document(
        self,
        path: str,
        on_next: SnapshotCallback,
        on_error: ErrorCallback | None = None,
    ) -> Subscription:
        return await self._register(
            _Watcher(on_next=on_next, on_error=on_error, path=path), f"document:{path}"
        )

    async def watch_query(
        self,
        query: Query,
        on_next: QueryCallback,
        on_error: ErrorCallback | None = None,
    ) -> Subscription:
        return await self._register(
            _Watcher(on_next=on_next, on_error=on_error, query=query),
            f"query:{query.collection}",
        )

    async def _register(self, watcher: _Watcher, description: str) -> Subscription:
        if self._listener is None:
            raise TransientNetworkError("Database not connected")

        watcher_id = next(self._ids)
        self._watchers[watcher_id] = watcher
        try:
            await self._refresh(watcher)
        except StoreError:
            self._watchers.pop(watcher_id, None)
            raise
        return Subscription(description, on_cancel=lambda: self._watchers.pop(watcher_id, None))

    def _on_notification(
        self, connection: asyncpg.Connection, pid: int, channel: str, payload: str
    ) -> None:
        self._notifications.put_nowait(payload)

    def _on_listener_terminated(self, connection: asyncpg.Connection) -> None:
        logger.warning("Document store listener connection terminated")
        self._fail_watchers(TransientNetworkError("Document store listener connection lost"))

    async def _dispatch_notifications(self) -> None:
        while True:
            path = await self._notifications.get()
            collection, _ = split_path(path)
            for watcher_id, watcher in list(self._watchers.items()):
                # Cancelled while an earlier refresh was awaiting
                if watcher_id not in self._watchers:
                    continue
                if watcher.path == path or (
                    watcher.query is not None and watcher.query.collection == collection
                ):
                    try:
                        await self._refresh(watcher)
                    except StoreError as e:
                        logger.warning(f"Subscription refresh failed for {path}: {e}")
                        self._watchers.pop(watcher_id, None)
                        if watcher.on_error is not None:
                            watcher.on_error(e)

    async def _refresh(self, watcher: _Watcher) -> None:
        if watcher.path is not None:
            snapshot = await self.get(watcher.path)
            if watcher.last is not _MISSING and watcher.last == snapshot.data:
                return
            watcher.last = snapshot.data
            payload: Any = snapshot
        else:
            results = await self.query(watcher.query)
            fingerprint = [(snap.path, snap.data) for snap in results]
            if watcher.last is not _MISSING and watcher.last == fingerprint:
                return
            watcher.last = fingerprint
            payload = results

        try:
            watcher.on_next(payload)
        except Exception as e:
            logger.error(f"Subscription callback failed: {e}", exc_info=True)

    def _fail_watchers(self, error: Exception) -> None:
        watchers = list(self._watchers.values())
        self._watchers.clear()
        for watcher in watchers:
            if watcher.on_error is not None:
                watcher.on_error(error)
