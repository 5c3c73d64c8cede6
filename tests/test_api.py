"""End-to-end tests for the HTTP API."""

import pytest

from icebreaker_api import __version__
from icebreaker_api.api.health import format_uptime

OWNER = {"X-User-Id": "owner-1", "X-User-Name": "Olive"}
ADA = {"X-User-Id": "u1", "X-User-Name": "Ada"}


async def create_channel(client, name="Friday lunch crew"):
    response = await client.post("/channels", json={"name": name}, headers=OWNER)
    assert response.status_code == 201
    return response.json()


async def start_session(client, channel_id):
    response = await client.post(f"/channels/{channel_id}/sessions", headers=OWNER)
    assert response.status_code == 201
    return response.json()


def test_format_uptime():
    assert format_uptime(90061) == "Days: 1, Hours: 1, Minutes: 1, Seconds: 1"
    assert format_uptime(59.9) == "Days: 0, Hours: 0, Minutes: 0, Seconds: 59"


@pytest.mark.asyncio
class TestServiceEndpoints:
    """Test health, version and root endpoints."""

    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["store_connected"] is True
        assert data["version"] == __version__

    async def test_version(self, client):
        response = await client.get("/version")
        assert response.json() == {"service_version": __version__, "document_store": "memory"}

    async def test_root(self, client):
        data = (await client.get("/")).json()
        assert data["service"] == "Ice-breaker API"
        assert data["health"] == "/health"

    async def test_interest_tags(self, client):
        response = await client.get("/interest-tags")
        assert response.status_code == 200
        groups = response.json()["groups"]
        assert groups[0]["category"] == "Popular"
        assert groups[0]["tags"][0]["name"] == "Gaming"


@pytest.mark.asyncio
class TestChannelEndpoints:
    """Test channel and membership endpoints."""

    async def test_create_and_get_channel(self, client):
        channel = await create_channel(client)
        assert channel["owner_id"] == "owner-1"

        response = await client.get(f"/channels/{channel['id']}")
        assert response.json()["name"] == "Friday lunch crew"

    async def test_create_with_blank_name(self, client):
        response = await client.post("/channels", json={"name": "   "}, headers=OWNER)
        assert response.status_code == 422

    async def test_get_missing_channel(self, client):
        response = await client.get("/channels/missing")
        assert response.status_code == 404

    async def test_list_owned_channels(self, client):
        await create_channel(client, "First")
        await create_channel(client, "Second")

        data = (await client.get("/channels", headers=OWNER)).json()
        assert data["total"] == 2
        assert [c["name"] for c in data["channels"]] == ["Second", "First"]
        assert (await client.get("/channels", headers=ADA)).json()["total"] == 0

    async def test_list_available_channels(self, client):
        open_channel = await create_channel(client, "Open")
        done = await create_channel(client, "Done")
        session = await start_session(client, done["id"])
        await client.post(f"/channels/{done['id']}/sessions/{session['id']}/end", headers=OWNER)

        data = (await client.get("/channels?available=true", headers=OWNER)).json()
        assert [c["id"] for c in data["channels"]] == [open_channel["id"]]

    async def test_rename_channel(self, client):
        channel = await create_channel(client)
        response = await client.patch(
            f"/channels/{channel['id']}", json={"name": "Book club"}, headers=OWNER
        )
        assert response.status_code == 200
        assert response.json()["name"] == "Book club"

    async def test_rename_by_member_is_forbidden(self, client):
        channel = await create_channel(client)
        response = await client.patch(
            f"/channels/{channel['id']}", json={"name": "Mine now"}, headers=ADA
        )
        assert response.status_code == 403

    async def test_host_state(self, client):
        channel = await create_channel(client)
        response = await client.get(f"/channels/{channel['id']}/host", headers=OWNER)
        assert response.json()["state"] == "idle"

        denied = await client.get(f"/channels/{channel['id']}/host", headers=ADA)
        assert denied.status_code == 403

    async def test_join_and_list_members(self, client):
        channel = await create_channel(client)
        response = await client.post(
            f"/channels/{channel['id']}/members", json={"bio": "Likes chess"}, headers=ADA
        )
        assert response.status_code == 200
        assert response.json()["display_name"] == "Ada"

        members = (await client.get(f"/channels/{channel['id']}/members")).json()
        assert members["total"] == 1
        assert members["members"][0]["bio"] == "Likes chess"

    async def test_join_missing_channel(self, client):
        response = await client.post("/channels/missing/members", json={}, headers=ADA)
        assert response.status_code == 404

    async def test_set_interests(self, client):
        channel = await create_channel(client)
        await client.post(f"/channels/{channel['id']}/members", json={}, headers=ADA)

        response = await client.put(
            f"/channels/{channel['id']}/members/me/interests",
            json={"tags": ["Gaming", "Traveling"]},
            headers=ADA,
        )
        assert response.status_code == 200
        assert response.json()["interests"] == ["Gaming", "Traveling"]

    async def test_too_many_interests(self, client):
        channel = await create_channel(client)
        response = await client.put(
            f"/channels/{channel['id']}/members/me/interests",
            json={"tags": ["a", "b", "c", "d", "e"]},
            headers=ADA,
        )
        assert response.status_code == 400


@pytest.mark.asyncio
class TestSessionEndpoints:
    """Test the session lifecycle over HTTP."""

    async def test_start_and_get_latest(self, client):
        channel = await create_channel(client)
        session = await start_session(client, channel["id"])
        assert session["status"] == "active"

        latest = await client.get(f"/channels/{channel['id']}/sessions/latest")
        assert latest.json()["id"] == session["id"]

        fetched = await client.get(f"/channels/{channel['id']}/sessions/{session['id']}")
        assert fetched.json()["owner_id"] == "owner-1"

    async def test_latest_without_sessions(self, client):
        channel = await create_channel(client)
        response = await client.get(f"/channels/{channel['id']}/sessions/latest")
        assert response.status_code == 404

    async def test_start_while_live_conflicts(self, client):
        channel = await create_channel(client)
        await start_session(client, channel["id"])

        response = await client.post(f"/channels/{channel['id']}/sessions", headers=OWNER)
        assert response.status_code == 409

    async def test_member_cannot_start(self, client):
        channel = await create_channel(client)
        response = await client.post(f"/channels/{channel['id']}/sessions", headers=ADA)
        assert response.status_code == 403

    async def test_end_session(self, client):
        channel = await create_channel(client)
        session = await start_session(client, channel["id"])

        path = f"/channels/{channel['id']}/sessions/{session['id']}/end"
        response = await client.post(path, headers=OWNER)
        assert response.json()["status"] == "end"
        assert response.json()["ended_at"] is not None

        again = await client.post(path, headers=OWNER)
        assert again.json()["ended_at"] == response.json()["ended_at"]

        restart = await client.post(f"/channels/{channel['id']}/sessions", headers=OWNER)
        assert restart.status_code == 201

    async def test_missing_session(self, client):
        channel = await create_channel(client)
        response = await client.get(f"/channels/{channel['id']}/sessions/missing")
        assert response.status_code == 404

    async def test_activity_prompt(self, client):
        channel = await create_channel(client)
        channel_id = channel["id"]
        await client.post(f"/channels/{channel_id}/members", json={}, headers=ADA)
        await client.put(
            f"/channels/{channel_id}/members/me/interests", json={"tags": ["Gaming"]}, headers=ADA
        )
        session = await start_session(client, channel_id)

        path = f"/channels/{channel_id}/sessions/{session['id']}/activity"
        first = (await client.get(path, headers=ADA)).json()
        assert first["category"] == "gaming"
        assert first["fallback"] is False

        # The owner sees the prompt already chosen for the session
        second = (await client.get(path, headers=OWNER)).json()
        assert second["activity_id"] == first["activity_id"]

        stored = (await client.get(f"/channels/{channel_id}/sessions/{session['id']}")).json()
        assert stored["activity_id"] == first["activity_id"]
        assert stored["tags"] == ["Gaming"]


@pytest.mark.asyncio
class TestMessageEndpoints:
    """Test chat over HTTP."""

    async def test_send_and_list(self, client):
        channel = await create_channel(client)
        session = await start_session(client, channel["id"])
        path = f"/channels/{channel['id']}/sessions/{session['id']}/messages"

        sent = await client.post(path, json={"text": " hello "}, headers=ADA)
        assert sent.status_code == 200
        assert sent.json()["sent"] is True
        assert sent.json()["message"]["text"] == "hello"
        assert sent.json()["message"]["author_display_name"] == "Ada"

        await client.post(path, json={"text": "hi"}, headers=OWNER)

        data = (await client.get(path)).json()
        assert data["total"] == 2
        assert [m["text"] for m in data["messages"]] == ["hello", "hi"]

        window = (await client.get(f"{path}?limit=1")).json()
        assert [m["text"] for m in window["messages"]] == ["hi"]

    async def test_blank_message_not_sent(self, client):
        channel = await create_channel(client)
        session = await start_session(client, channel["id"])
        path = f"/channels/{channel['id']}/sessions/{session['id']}/messages"

        response = await client.post(path, json={"text": "   "}, headers=ADA)
        assert response.json() == {"sent": False, "message": None}

    async def test_message_to_ended_session_not_sent(self, client):
        channel = await create_channel(client)
        session = await start_session(client, channel["id"])
        await client.post(
            f"/channels/{channel['id']}/sessions/{session['id']}/end", headers=OWNER
        )

        path = f"/channels/{channel['id']}/sessions/{session['id']}/messages"
        response = await client.post(path, json={"text": "too late"}, headers=ADA)
        assert response.json()["sent"] is False

    async def test_invalid_limit(self, client):
        response = await client.get("/channels/c1/sessions/s1/messages?limit=0")
        assert response.status_code == 422


@pytest.mark.asyncio
class TestUserEndpoints:
    """Test history and stats endpoints."""

    async def test_history_and_stats(self, client, seeded_store):
        from icebreaker_api.core import ParticipationLedger

        channel = await create_channel(client)
        session = await start_session(client, channel["id"])
        await ParticipationLedger(seeded_store).record("u1", channel["id"], session["id"])

        history = (await client.get("/users/me/sessions", headers=ADA)).json()
        assert history["total"] == 1
        assert history["entries"][0]["channel_name"] == "Friday lunch crew"
        assert history["entries"][0]["view"] == "session"

        stats = (await client.get("/users/me/stats", headers=ADA)).json()
        assert stats == {"sessions_joined": 1, "channels_hosted": 0}

        owner_stats = (await client.get("/users/me/stats", headers=OWNER)).json()
        assert owner_stats == {"sessions_joined": 0, "channels_hosted": 1}
