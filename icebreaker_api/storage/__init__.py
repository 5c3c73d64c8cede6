"""Document store boundary and adapters."""

import logging

from ..config import settings
from .base import (
    SERVER_TIMESTAMP,
    DocumentSnapshot,
    DocumentStore,
    FieldFilter,
    Query,
    document_path,
    split_path,
)
from .memory import MemoryDocumentStore
from .postgres import PostgresDocumentStore
from .subscription import Subscription

logger = logging.getLogger(__name__)

# Global store instance
_store: DocumentStore | None = None


def create_store() -> DocumentStore:
    """Build the configured store backend (not yet connected)."""
    backend = settings.document_store.lower()
    if backend == "memory":
        return MemoryDocumentStore()
    if backend == "postgres":
        return PostgresDocumentStore(settings.get_database_url())
    raise ValueError(f"Unknown document store backend: {settings.document_store}")


async def init_store() -> DocumentStore:
    """Initialize and return global store instance."""
    global _store
    if _store is None:
        _store = create_store()
        await _store.connect()
        logger.info(f"Document store initialized: {settings.document_store}")

    return _store


async def get_store() -> DocumentStore:
    """Get store instance (dependency injection).

    Auto-initializes if not already initialized (useful for tests).
    """
    global _store
    if _store is None:
        _store = await init_store()
    return _store


async def close_store() -> None:
    """Disconnect and drop the global store instance."""
    global _store
    if _store is not None:
        await _store.disconnect()
        _store = None


__all__ = [
    "SERVER_TIMESTAMP",
    "DocumentSnapshot",
    "DocumentStore",
    "FieldFilter",
    "MemoryDocumentStore",
    "PostgresDocumentStore",
    "Query",
    "Subscription",
    "close_store",
    "create_store",
    "document_path",
    "get_store",
    "init_store",
    "split_path",
]
