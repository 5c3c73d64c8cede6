"""Tests for catalog seeding."""

import pytest

from icebreaker_api.config import settings
from icebreaker_api.core import seed_catalogs
from icebreaker_api.core.catalog import load_catalog
from icebreaker_api.errors import InvalidArgument
from icebreaker_api.storage import Query
from icebreaker_api.telemetry import TelemetryEvents, get_dev_logs


def test_load_bundled_catalogs():
    activities = load_catalog(settings.catalog_path / "activities.yaml", "activities")
    tags = load_catalog(settings.catalog_path / "interest_tags.yaml", "interest_tags")

    assert {a["category"] for a in activities} == {"gaming", "tech", "traveling"}
    assert len({a["id"] for a in activities}) == len(activities)
    assert tags


def test_load_catalog_rejects_wrong_shape(tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text("activities:\n  id: not-a-list\n")
    with pytest.raises(InvalidArgument):
        load_catalog(path, "activities")


def test_load_catalog_rejects_empty_file(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    with pytest.raises(InvalidArgument):
        load_catalog(path, "activities")


@pytest.mark.asyncio
class TestSeeding:
    """Test seeding into the store."""

    async def test_seed_creates_documents(self, store):
        counts = await seed_catalogs(store)

        activities = await store.query(Query(collection="activities"))
        tags = await store.query(Query(collection="interestTags"))
        assert counts == {"activities": len(activities), "interestTags": len(tags)}
        assert counts["activities"] > 0
        assert get_dev_logs(TelemetryEvents.CATALOG_SEEDED)

    async def test_reseed_keeps_edited_entries(self, store):
        await seed_catalogs(store)
        await store.update("activities/gaming-first-game", {"title": "Edited"})

        counts = await seed_catalogs(store)

        assert counts == {"activities": 0, "interestTags": 0}
        edited = await store.get("activities/gaming-first-game")
        assert edited.data["title"] == "Edited"

    async def test_seed_from_custom_directory(self, store, tmp_path):
        (tmp_path / "activities.yaml").write_text(
            "activities:\n"
            "  - {id: gaming-one, category: gaming, title: One, prompt: Say one thing}\n"
        )
        (tmp_path / "interest_tags.yaml").write_text(
            "interest_tags:\n  - {id: chess, name: Chess, category: Popular}\n"
        )

        counts = await seed_catalogs(store, tmp_path)
        assert counts == {"activities": 1, "interestTags": 1}
