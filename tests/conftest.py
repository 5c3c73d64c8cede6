"""Pytest configuration and fixtures."""

import os
import random

# Set test environment variables BEFORE importing anything that loads settings
# This ensures tests run with auth disabled, HS256 JWTs and the in-memory store
os.environ["AUTH_REQUIRED"] = "false"
os.environ["JWT_ALGORITHM"] = "HS256"
os.environ["DOCUMENT_STORE"] = "memory"
os.environ["SESSION_INITIAL_STATUS"] = "active"
os.environ["TELEMETRY_APP_INSIGHTS_CONNECTION_STRING"] = ""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from icebreaker_api.config import settings

# Verify settings are correct for tests
assert settings.auth_required is False, "Test setup failed: auth_required should be False"
assert settings.jwt_algorithm == "HS256", "Test setup failed: jwt_algorithm should be HS256"
assert settings.document_store == "memory", "Test setup failed: document_store should be memory"


@pytest.fixture
def enable_auth():
    """Context manager to enable authentication for a test.

    Usage:
        with enable_auth:
            response = await client.get("/channels")
    """

    class AuthEnabler:
        def __enter__(self):
            # Use object.__setattr__ to bypass Pydantic's validation
            object.__setattr__(settings, "auth_required", True)
            return self

        def __exit__(self, *args):
            object.__setattr__(settings, "auth_required", False)

    return AuthEnabler()


@pytest.fixture(autouse=True)
def clean_telemetry():
    """Start every test with an empty development telemetry log."""
    from icebreaker_api.telemetry import clear_dev_logs

    clear_dev_logs()
    yield
    clear_dev_logs()


@pytest_asyncio.fixture(scope="function")
async def store():
    """A connected in-memory document store per test."""
    from icebreaker_api.storage import MemoryDocumentStore

    memory_store = MemoryDocumentStore()
    await memory_store.connect()
    yield memory_store
    await memory_store.disconnect()


@pytest_asyncio.fixture(scope="function")
async def seeded_store(store):
    """Store with the bundled prompt and interest catalogs."""
    from icebreaker_api.core import seed_catalogs

    await seed_catalogs(store)
    return store


@pytest.fixture
def cache():
    from icebreaker_api.core import InterestCache

    return InterestCache()


@pytest.fixture
def repository(store):
    from icebreaker_api.core import SessionRepository

    return SessionRepository(store, initial_status="active")


@pytest.fixture
def channels(store, repository):
    from icebreaker_api.core import ChannelRegistry

    return ChannelRegistry(store, repository)


@pytest.fixture
def membership(store, cache):
    from icebreaker_api.core import MembershipRegistry

    return MembershipRegistry(store, cache=cache, max_tags=4)


@pytest.fixture
def messages(store, repository):
    from icebreaker_api.core import MessageChannel

    return MessageChannel(store, repository, fetch_limit=200)


@pytest.fixture
def ledger(store):
    from icebreaker_api.core import ParticipationLedger

    return ParticipationLedger(store)


@pytest.fixture
def selector(store, repository, membership):
    from icebreaker_api.core import ActivityPromptSelector

    return ActivityPromptSelector(store, repository, membership, rng=random.Random(7))


@pytest.fixture
def host(store, repository, channels):
    from icebreaker_api.core import SessionHost

    return SessionHost(store, repository, channels)


@pytest_asyncio.fixture(scope="function")
async def channel(channels):
    """A channel owned by ``owner-1``."""
    return await channels.create_channel("Friday lunch crew", "owner-1")


@pytest_asyncio.fixture(scope="function")
async def client(seeded_store):
    """Create test client backed by a seeded in-memory store."""
    from fastapi import FastAPI

    from icebreaker_api.api import (
        catalog_router,
        channels_router,
        health_router,
        messages_router,
        sessions_router,
        users_router,
    )
    from icebreaker_api.core import interest_cache
    from icebreaker_api.middleware.auth import AuthMiddleware
    from icebreaker_api.storage import get_store

    # Create a test app with auth middleware
    test_app = FastAPI(title="Test App")
    test_app.add_middleware(AuthMiddleware)

    test_app.include_router(health_router)
    test_app.include_router(catalog_router)
    test_app.include_router(channels_router)
    test_app.include_router(sessions_router)
    test_app.include_router(messages_router)
    test_app.include_router(users_router)

    test_app.dependency_overrides[get_store] = lambda: seeded_store
    interest_cache.clear()

    try:
        async with AsyncClient(
            transport=ASGITransport(app=test_app),
            base_url="http://test",
            timeout=5.0,
        ) as test_client:
            yield test_client
    finally:
        test_app.dependency_overrides.clear()
        interest_cache.clear()
