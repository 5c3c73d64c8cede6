"""Tests for the channel registry and owner session controls."""

import pytest

from icebreaker_api.core.hosting import host_view
from icebreaker_api.errors import InvalidArgument, NotFound, PermissionDenied, SessionAlreadyLive
from icebreaker_api.models import HostState, SessionStatus
from icebreaker_api.telemetry import TelemetryEvents, get_dev_logs


@pytest.mark.asyncio
class TestChannelRegistry:
    """Test channel CRUD."""

    async def test_create_channel(self, channels):
        channel = await channels.create_channel("  Friday lunch crew  ", "owner-1")
        assert channel.name == "Friday lunch crew"
        assert channel.owner_id == "owner-1"
        assert channel.created_at is not None

    async def test_create_rejects_blank_name(self, channels):
        with pytest.raises(InvalidArgument):
            await channels.create_channel("   ", "owner-1")

    async def test_create_requires_owner(self, channels):
        with pytest.raises(InvalidArgument):
            await channels.create_channel("Lunch", "")

    async def test_get_missing_channel(self, channels):
        assert await channels.find_channel("missing") is None
        with pytest.raises(NotFound):
            await channels.get_channel("missing")

    async def test_rename_by_owner(self, channels, channel):
        renamed = await channels.rename_channel(channel.id, "owner-1", "Book club")
        assert renamed.name == "Book club"
        assert renamed.owner_id == "owner-1"

    async def test_rename_by_stranger_is_denied(self, channels, channel):
        with pytest.raises(PermissionDenied):
            await channels.rename_channel(channel.id, "someone-else", "Hijacked")
        assert (await channels.get_channel(channel.id)).name == "Friday lunch crew"
        assert get_dev_logs(TelemetryEvents.PERMISSION_DENIED)

    async def test_list_owned_newest_first(self, channels):
        first = await channels.create_channel("First", "owner-1")
        second = await channels.create_channel("Second", "owner-1")
        await channels.create_channel("Other", "owner-2")

        owned = await channels.list_owned("owner-1")
        assert [c.id for c in owned] == [second.id, first.id]

    async def test_list_available_hosted(self, channels, repository):
        idle = await channels.create_channel("Idle", "owner-1")
        live = await channels.create_channel("Live", "owner-1")
        done = await channels.create_channel("Done", "owner-1")

        await repository.create_session(live.id, "owner-1")
        ended = await repository.create_session(done.id, "owner-1")
        await repository.end_session(done.id, ended)

        available = await channels.list_available_hosted("owner-1")
        assert {c.id for c in available} == {idle.id, live.id}


@pytest.mark.asyncio
class TestSessionHost:
    """Test starting and ending sessions as the owner."""

    async def test_host_state_idle(self, host, channel):
        view = await host.host_state(channel.id)
        assert view.state == HostState.IDLE
        assert view.can_start is True
        assert view.session_id is None

    async def test_start_session(self, host, channel):
        session = await host.start(channel.id, "owner-1")
        assert session.status == SessionStatus.ACTIVE
        assert session.owner_id == "owner-1"

        view = await host.host_state(channel.id)
        assert view.state == HostState.ACTIVE
        assert view.session_id == session.id
        assert view.can_start is False

    async def test_start_requires_owner(self, host, channel):
        with pytest.raises(PermissionDenied):
            await host.start(channel.id, "member-1")

    async def test_start_requires_identity(self, host, channel):
        with pytest.raises(PermissionDenied):
            await host.start(channel.id, None)

    async def test_start_missing_channel(self, host):
        with pytest.raises(NotFound):
            await host.start("missing", "owner-1")

    async def test_start_rejected_while_live(self, host, channel):
        session = await host.start(channel.id, "owner-1")
        with pytest.raises(SessionAlreadyLive) as exc_info:
            await host.start(channel.id, "owner-1")
        assert exc_info.value.session_id == session.id
        assert get_dev_logs(TelemetryEvents.SESSION_START_REJECTED)

    async def test_start_after_end(self, host, channel):
        first = await host.start(channel.id, "owner-1")
        await host.end(channel.id, "owner-1", first.id)

        second = await host.start(channel.id, "owner-1")
        assert second.id != first.id
        assert (await host.host_state(channel.id)).session_id == second.id

    async def test_end_latest_session(self, host, channel):
        session = await host.start(channel.id, "owner-1")
        ended = await host.end(channel.id, "owner-1")
        assert ended.id == session.id
        assert ended.status == SessionStatus.END

        view = await host.host_state(channel.id)
        assert view.state == HostState.ENDED
        assert view.can_start is True

    async def test_end_without_sessions(self, host, channel):
        with pytest.raises(NotFound):
            await host.end(channel.id, "owner-1")

    async def test_end_requires_owner(self, host, channel):
        session = await host.start(channel.id, "owner-1")
        with pytest.raises(PermissionDenied):
            await host.end(channel.id, "member-1", session.id)

    async def test_watch_follows_latest_session(self, host, channel):
        views = []
        subscription = await host.watch(channel.id, views.append)

        session = await host.start(channel.id, "owner-1")
        await host.end(channel.id, "owner-1", session.id)

        assert [v.state for v in views] == [HostState.IDLE, HostState.ACTIVE, HostState.ENDED]
        subscription.cancel()


def test_host_view_mapping():
    assert host_view("c1", None).state == HostState.IDLE
