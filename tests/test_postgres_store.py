"""Tests for the PostgreSQL store's encoding and SQL building.

These run without a database; the store's I/O paths are exercised against
the same DocumentStore contract as the memory store.
"""

import asyncio
import json
from datetime import UTC, datetime, timedelta, timezone

import pytest

from icebreaker_api.errors import TransientNetworkError
from icebreaker_api.storage import SERVER_TIMESTAMP, PostgresDocumentStore, Query
from icebreaker_api.storage.postgres import (
    _Watcher,
    build_query_sql,
    contains_server_timestamp,
    decode_document,
    encode_document,
    encode_value,
)
from icebreaker_api.storage.schema import INIT_SCHEMA, NOTIFY_CHANNEL


class TestEncoding:
    """Test document encoding."""

    def test_contains_server_timestamp_nested(self):
        assert contains_server_timestamp({"a": {"b": [SERVER_TIMESTAMP]}})
        assert not contains_server_timestamp({"a": {"b": [1, "x"]}})

    def test_server_timestamp_needs_clock(self):
        with pytest.raises(ValueError):
            encode_value(SERVER_TIMESTAMP)

    def test_timestamps_are_fixed_width_utc(self):
        now = datetime(2024, 5, 1, 12, 0, 0, tzinfo=UTC)
        assert encode_value(now) == "2024-05-01T12:00:00.000000+00:00"

    def test_offset_timestamps_normalized_to_utc(self):
        local = datetime(2024, 5, 1, 14, 0, 0, tzinfo=timezone(timedelta(hours=2)))
        assert encode_value(local) == "2024-05-01T12:00:00.000000+00:00"

    def test_encoded_timestamps_sort_chronologically(self):
        earlier = datetime(2024, 5, 1, 9, 59, 59, 999999, tzinfo=UTC)
        later = datetime(2024, 5, 1, 10, 0, 0, 1, tzinfo=UTC)
        assert encode_value(earlier) < encode_value(later)

    def test_document_round_trip_restores_datetimes(self):
        now = datetime(2024, 5, 1, 12, 30, 15, 250000, tzinfo=UTC)
        raw = encode_document(
            {"createdAt": SERVER_TIMESTAMP, "lastSession": {"updatedAt": now}, "tags": ["a"]},
            now=now,
        )
        data = decode_document(raw)
        assert data == {"createdAt": now, "lastSession": {"updatedAt": now}, "tags": ["a"]}

    def test_plain_strings_are_not_decoded(self):
        data = decode_document(json.dumps({"text": "2024-05-01 at noon"}))
        assert data["text"] == "2024-05-01 at noon"


class TestQuerySql:
    """Test SQL generation."""

    def test_collection_only(self):
        sql, params, reverse = build_query_sql(Query(collection="channels"))
        assert "collection = $1" in sql
        assert "ORDER BY doc_id ASC" in sql
        assert params == ["channels"]
        assert reverse is False

    def test_filters_compare_jsonb(self):
        sql, params, _ = build_query_sql(Query(collection="channels").where("ownerId", "u1"))
        assert "data -> $2 = $3::jsonb" in sql
        assert params == ["channels", "ownerId", '"u1"']

    def test_order_by_excludes_null_and_limits(self):
        sql, params, reverse = build_query_sql(
            Query(collection="c/s", order_by="createdAt", descending=True, limit=1)
        )
        assert "jsonb_typeof(data -> $2)" in sql
        assert "ORDER BY data -> $2 DESC, path DESC" in sql
        assert sql.endswith("LIMIT $3")
        assert params == ["c/s", "createdAt", 1]
        assert reverse is False

    def test_limit_to_last_flips_direction(self):
        sql, _, reverse = build_query_sql(
            Query(collection="m", order_by="createdAt", limit=200, limit_to_last=True)
        )
        assert "ORDER BY data -> $2 DESC" in sql
        assert reverse is True

    def test_limit_to_last_without_limit_is_plain(self):
        sql, _, reverse = build_query_sql(
            Query(collection="m", order_by="createdAt", limit_to_last=True)
        )
        assert "ASC" in sql
        assert reverse is False


class TestSchema:
    """Test schema statements."""

    def test_schema_creates_documents_table_and_notify_trigger(self):
        assert "CREATE TABLE IF NOT EXISTS documents" in INIT_SCHEMA
        assert f"pg_notify('{NOTIFY_CHANNEL}'" in INIT_SCHEMA


@pytest.mark.asyncio
class TestDisconnectedStore:
    """Test behavior before connect()."""

    async def test_get_requires_connection(self):
        store = PostgresDocumentStore("postgresql://user:pw@localhost:1/none")
        with pytest.raises(TransientNetworkError):
            await store.get("channels/c1")

    async def test_watch_requires_connection(self):
        store = PostgresDocumentStore("postgresql://user:pw@localhost:1/none")
        with pytest.raises(TransientNetworkError):
            await store.watch_document("channels/c1", lambda s: None)


@pytest.mark.asyncio
class TestNotificationDispatch:
    """Test fan-out of change notifications to subscriptions."""

    async def test_cancelled_watcher_is_skipped(self):
        store = PostgresDocumentStore("postgresql://user:pw@localhost:1/none")
        first = _Watcher(on_next=lambda s: None, on_error=None, path="channels/c1")
        second = _Watcher(on_next=lambda s: None, on_error=None, path="channels/c1")
        store._watchers = {1: first, 2: second}
        refreshed = []

        async def refresh(watcher):
            refreshed.append(watcher)
            # The second subscription is cancelled while this refresh runs
            store._watchers.pop(2, None)

        store._refresh = refresh
        store._notifications.put_nowait("channels/c1")
        dispatcher = asyncio.create_task(store._dispatch_notifications())
        for _ in range(5):
            await asyncio.sleep(0)
        dispatcher.cancel()
        with pytest.raises(asyncio.CancelledError):
            await dispatcher

        assert len(refreshed) == 1
        assert refreshed[0] is first
