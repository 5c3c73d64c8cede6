"""Tests for authentication middleware."""

import time
from unittest.mock import MagicMock, patch

import jwt
import pytest
from httpx import AsyncClient

from icebreaker_api.config import settings
from icebreaker_api.middleware.auth import identity_from_claims
from icebreaker_api.telemetry import TelemetryEvents, get_dev_logs


def make_token(claims: dict) -> str:
    return jwt.encode(claims, settings.secret_key, algorithm="HS256")


def test_identity_from_claims():
    identity = identity_from_claims({"sub": "u1", "name": "Ada", "email": "ada@example.com"})
    assert identity.user_id == "u1"
    assert identity.name == "Ada"


def test_identity_name_falls_back_to_email():
    identity = identity_from_claims({"sub": "u1", "email": "ada@example.com"})
    assert identity.name == "ada@example.com"


@pytest.mark.asyncio
async def test_public_paths_bypass_auth(client: AsyncClient, enable_auth):
    """Test that public paths don't require authentication."""
    with enable_auth:
        for path in ["/", "/health", "/version", "/interest-tags"]:
            response = await client.get(path)
            # Should not get 401 Unauthorized
            assert response.status_code != 401


@pytest.mark.asyncio
async def test_auth_disabled_uses_dev_headers(client: AsyncClient):
    """Test identity headers when AUTH_REQUIRED=false (dev mode)."""
    response = await client.post(
        "/channels", json={"name": "Dev channel"}, headers={"X-User-Id": "dev-42"}
    )
    assert response.status_code == 201
    assert response.json()["owner_id"] == "dev-42"


@pytest.mark.asyncio
async def test_auth_disabled_falls_back_to_dev_user(client: AsyncClient):
    response = await client.post("/channels", json={"name": "Dev channel"})
    assert response.json()["owner_id"] == settings.dev_user_id


@pytest.mark.asyncio
async def test_missing_jwt_when_auth_enabled(client: AsyncClient, enable_auth):
    """Test that missing JWT is rejected when auth is enabled."""
    with enable_auth:
        response = await client.get("/channels")
        assert response.status_code == 401
        assert "Authorization header" in response.json()["detail"]

    assert get_dev_logs(TelemetryEvents.AUTHENTICATION_FAILED)


@pytest.mark.asyncio
async def test_valid_jwt_accepted(client: AsyncClient, enable_auth):
    """Test that a valid HS256 JWT sets the caller's identity."""
    token = make_token({"sub": "jwt-user", "name": "Jay", "exp": 9999999999})

    with enable_auth:
        response = await client.post(
            "/channels",
            json={"name": "Signed channel"},
            headers={"Authorization": f"Bearer {token}"},
        )
        assert response.status_code == 201
        assert response.json()["owner_id"] == "jwt-user"


@pytest.mark.asyncio
async def test_dev_headers_ignored_when_auth_enabled(client: AsyncClient, enable_auth):
    with enable_auth:
        response = await client.get("/channels", headers={"X-User-Id": "someone"})
        assert response.status_code == 401


@pytest.mark.asyncio
async def test_expired_jwt_rejected(client: AsyncClient, enable_auth):
    """Test that expired JWT is rejected."""
    token = make_token({"sub": "jwt-user", "exp": 1000000000})

    with enable_auth:
        response = await client.get("/channels", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json()["detail"] == "JWT expired"


@pytest.mark.asyncio
async def test_jwt_without_sub_rejected(client: AsyncClient, enable_auth):
    token = make_token({"name": "Nobody", "exp": 9999999999})

    with enable_auth:
        response = await client.get("/channels", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert "sub" in response.json()["detail"]


@pytest.mark.asyncio
async def test_jwt_with_wrong_secret_rejected(client: AsyncClient, enable_auth):
    token = jwt.encode({"sub": "jwt-user"}, "some-other-secret", algorithm="HS256")

    with enable_auth:
        response = await client.get("/channels", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json()["detail"].startswith("Invalid JWT")


@pytest.mark.asyncio
async def test_key_lookup_timeout_degrades_to_anonymous(client: AsyncClient, enable_auth):
    """Test that a slow JWKS endpoint leaves the caller anonymous and read-only."""
    channel = (await client.post("/channels", json={"name": "Public"})).json()

    slow_client = MagicMock()
    slow_client.get_signing_key_from_jwt.side_effect = lambda token: time.sleep(0.5)
    token = make_token({"sub": "jwt-user"})
    headers = {"Authorization": f"Bearer {token}"}

    with (
        enable_auth,
        patch.object(settings, "jwt_algorithm", "RS256"),
        patch.object(settings, "jwt_public_key_url", "https://keys.example.com/jwks"),
        patch.object(settings, "identity_timeout_seconds", 0.05),
        patch("icebreaker_api.middleware.auth._get_jwks_client", return_value=slow_client),
    ):
        read = await client.get(f"/channels/{channel['id']}", headers=headers)
        assert read.status_code == 200

        write = await client.post("/channels", json={"name": "Nope"}, headers=headers)
        assert write.status_code == 401
        assert write.json()["detail"] == "Authentication required"


@pytest.mark.asyncio
async def test_rs256_without_key_url(client: AsyncClient, enable_auth):
    token = make_token({"sub": "jwt-user"})

    with (
        enable_auth,
        patch.object(settings, "jwt_algorithm", "RS256"),
        patch.object(settings, "jwt_public_key_url", None),
    ):
        response = await client.get("/channels", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 500
