"""Seeding of the read-only prompt and interest catalogs."""

import logging
from pathlib import Path
from typing import Any

import yaml

from ..config import settings
from ..errors import AlreadyExists, InvalidArgument
from ..models import ActivityPrompt, InterestTag
from ..storage import DocumentStore, document_path
from ..telemetry import TelemetryEvents, track_event
from .activity_selector import ACTIVITIES
from .membership import INTEREST_TAGS

logger = logging.getLogger(__name__)


def load_catalog(path: Path, key: str) -> list[dict[str, Any]]:
    """Read a list of catalog entries from a YAML file.

    Args:
        path: YAML file
        key: Top-level key holding the entries

    Raises:
        InvalidArgument: If the file does not hold a list under ``key``
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    entries = data.get(key) if isinstance(data, dict) else None
    if not isinstance(entries, list):
        raise InvalidArgument(f"Catalog {path} must contain a list under '{key}'")
    return entries


async def _seed(
    store: DocumentStore, collection: str, documents: dict[str, dict[str, Any]]
) -> int:
    created = 0
    for doc_id, data in documents.items():
        try:
            await store.create(document_path(collection, doc_id), data)
            created += 1
        except AlreadyExists:
            # Existing entries are left as edited
            continue
    return created


async def seed_catalogs(
    store: DocumentStore, catalog_path: Path | None = None
) -> dict[str, int]:
    """Create missing catalog documents from the bundled YAML files.

    Returns:
        Number of documents created per collection
    """
    catalog_path = catalog_path or settings.catalog_path

    activities = [
        ActivityPrompt.model_validate(entry)
        for entry in load_catalog(catalog_path / "activities.yaml", "activities")
    ]
    tags = [
        InterestTag.model_validate(entry)
        for entry in load_catalog(catalog_path / "interest_tags.yaml", "interest_tags")
    ]

    counts = {
        ACTIVITIES: await _seed(store, ACTIVITIES, {a.id: a.to_document() for a in activities}),
        INTEREST_TAGS: await _seed(store, INTEREST_TAGS, {t.id: t.to_document() for t in tags}),
    }

    logger.info(
        f"Catalogs seeded: {counts[ACTIVITIES]} activities, {counts[INTEREST_TAGS]} interest tags"
    )
    track_event(TelemetryEvents.CATALOG_SEEDED, counts)
    return counts
