"""Tests for the session repository."""

import pytest

from icebreaker_api.core import SessionRepository
from icebreaker_api.core.session_repository import session_path
from icebreaker_api.errors import InvalidArgument, InvalidDocument, InvalidTransition, NotFound
from icebreaker_api.models import ActivityPrompt, SessionStatus
from icebreaker_api.telemetry import TelemetryEvents, get_dev_logs


@pytest.mark.asyncio
class TestCreateSession:
    """Test session creation."""

    async def test_create_writes_canonical_document(self, store, repository):
        session_id = await repository.create_session("c1", "owner-1")

        data = (await store.get(session_path("c1", session_id))).data
        assert data["ownerId"] == "owner-1"
        assert data["status"] == "active"
        assert data["createdAt"] is not None
        assert data["endedAt"] is None
        assert data["tags"] == []

    async def test_create_pending_when_configured(self, store):
        pending = SessionRepository(store, initial_status="pending")
        session_id = await pending.create_session("c1", "owner-1")
        session = await pending.get_session("c1", session_id)
        assert session.status == SessionStatus.PENDING

    async def test_cannot_create_ended_sessions(self, store):
        with pytest.raises(InvalidArgument):
            SessionRepository(store, initial_status="end")

    async def test_create_requires_owner(self, repository):
        with pytest.raises(InvalidArgument):
            await repository.create_session("c1", "")

    async def test_create_tracks_event(self, repository):
        session_id = await repository.create_session("c1", "owner-1")
        events = get_dev_logs(TelemetryEvents.SESSION_CREATED)
        assert events[-1]["properties"]["session_id"] == session_id


@pytest.mark.asyncio
class TestReadSessions:
    """Test lookups."""

    async def test_get_missing_session(self, repository):
        assert await repository.get_session("c1", "missing") is None

    async def test_require_missing_session(self, repository):
        with pytest.raises(NotFound):
            await repository.require_session("c1", "missing")

    async def test_latest_session_by_creation_time(self, repository):
        assert await repository.get_latest_session("c1") is None

        first = await repository.create_session("c1", "owner-1")
        await repository.end_session("c1", first)
        second = await repository.create_session("c1", "owner-1")

        latest = await repository.get_latest_session("c1")
        assert latest.id == second
        assert latest.channel_id == "c1"

    async def test_malformed_session_document(self, store, repository):
        await store.set(session_path("c1", "bad"), {"status": "exploded", "ownerId": "o"})
        with pytest.raises(InvalidDocument):
            await repository.get_session("c1", "bad")


@pytest.mark.asyncio
class TestTransitions:
    """Test that status only moves forward."""

    async def test_end_sets_status_and_time(self, repository):
        session_id = await repository.create_session("c1", "owner-1")
        ended = await repository.end_session("c1", session_id)
        assert ended.status == SessionStatus.END
        assert ended.ended_at is not None

    async def test_end_is_idempotent(self, store, repository):
        session_id = await repository.create_session("c1", "owner-1")
        first = await repository.end_session("c1", session_id)

        writes = []
        await store.watch_document(session_path("c1", session_id), writes.append)
        second = await repository.end_session("c1", session_id)

        assert second.ended_at == first.ended_at
        # Only the initial delivery, no new write
        assert len(writes) == 1

    async def test_end_missing_session(self, repository):
        with pytest.raises(NotFound):
            await repository.end_session("c1", "missing")

    async def test_end_concurrent_active_sessions(self, repository):
        first = await repository.create_session("c1", "owner-1")
        second = await repository.create_session("c1", "owner-2")
        for session_id in (first, second):
            session = await repository.get_session("c1", session_id)
            assert session.status == SessionStatus.ACTIVE

        ended = [await repository.end_session("c1", sid) for sid in (first, second)]

        assert [s.status for s in ended] == [SessionStatus.END, SessionStatus.END]
        assert all(s.ended_at is not None for s in ended)
        assert (await repository.get_latest_session("c1")).id == second

    async def test_start_pending_session(self, store):
        pending = SessionRepository(store, initial_status="pending")
        session_id = await pending.create_session("c1", "owner-1")
        started = await pending.start_session("c1", session_id)
        assert started.status == SessionStatus.ACTIVE

    async def test_cannot_start_active_session(self, repository):
        session_id = await repository.create_session("c1", "owner-1")
        with pytest.raises(InvalidTransition):
            await repository.start_session("c1", session_id)

    async def test_cannot_restart_ended_session(self, repository):
        session_id = await repository.create_session("c1", "owner-1")
        await repository.end_session("c1", session_id)
        with pytest.raises(InvalidTransition):
            await repository.start_session("c1", session_id)


@pytest.mark.asyncio
class TestSessionFields:
    """Test tags and activity fields."""

    async def test_tags_are_written_once(self, repository):
        session_id = await repository.create_session("c1", "owner-1")
        assert await repository.set_tags_if_empty("c1", session_id, ["Gaming"]) is True
        assert await repository.set_tags_if_empty("c1", session_id, ["Travel"]) is False

        session = await repository.get_session("c1", session_id)
        assert session.tags == ["Gaming"]

    async def test_empty_tags_are_not_written(self, repository):
        session_id = await repository.create_session("c1", "owner-1")
        assert await repository.set_tags_if_empty("c1", session_id, []) is False

    async def test_set_activity(self, repository):
        session_id = await repository.create_session("c1", "owner-1")
        await repository.set_activity(
            "c1",
            session_id,
            ActivityPrompt(id="a1", category="gaming", title="First game", prompt="Tell us"),
        )
        session = await repository.get_session("c1", session_id)
        assert session.has_activity
        assert session.activity_id == "a1"
        assert session.activity_category == "gaming"
        assert session.activity_title == "First game"
        assert session.activity_prompt == "Tell us"


@pytest.mark.asyncio
class TestObserveSessions:
    """Test session subscriptions."""

    async def test_observe_session_pushes_changes(self, repository):
        session_id = await repository.create_session("c1", "owner-1")
        seen = []
        subscription = await repository.observe_session("c1", session_id, seen.append)

        await repository.end_session("c1", session_id)

        assert [s.status for s in seen] == [SessionStatus.ACTIVE, SessionStatus.END]
        subscription.cancel()

    async def test_observe_missing_session_pushes_none(self, repository):
        seen = []
        await repository.observe_session("c1", "missing", seen.append)
        assert seen == [None]

    async def test_observe_routes_malformed_documents_to_on_error(self, store, repository):
        seen, errors = [], []
        await repository.observe_session("c1", "s1", seen.append, errors.append)
        await store.set(session_path("c1", "s1"), {"status": "??", "ownerId": "o"})

        assert seen == [None]
        assert isinstance(errors[0], InvalidDocument)

    async def test_observe_latest_session(self, repository):
        seen = []
        await repository.observe_latest_session("c1", seen.append)
        session_id = await repository.create_session("c1", "owner-1")

        assert seen[0] is None
        assert seen[-1].id == session_id
