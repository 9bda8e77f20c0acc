"""Persistence layer for journey snapshots."""

from __future__ import annotations

import os
from typing import Optional

from ..cache import TTLCache
from ..config import JourneyConfig, load_config
from .cached import CachedJourneyStore
from .inmemory import InMemoryJourneyStore
from .models import SessionSummary, SnapshotRecord
from .sqlite import SQLiteJourneyStore
from .store import JourneyStore


def get_store(
    database_url: Optional[str] = None,
    config: Optional[JourneyConfig] = None,
    cache: Optional[TTLCache] = None,
) -> JourneyStore:
    """Factory function to obtain a journey store.

    The backend is selected from ``database_url``, which can be provided
    explicitly, via the ``JOURNEYFLOW_DATABASE_URL`` environment variable,
    or from loaded configuration. When no database is configured, an
    in-memory store is returned. Passing ``cache`` wraps the store in a
    :class:`CachedJourneyStore`.
    """

    config = config or load_config()
    database_url = (
        database_url
        or os.getenv("JOURNEYFLOW_DATABASE_URL")
        or config.database_url
    )
    max_versions = config.autosave.max_versions

    store: JourneyStore
    if not database_url:
        store = InMemoryJourneyStore(max_versions=max_versions)
    elif database_url.startswith("sqlite://"):
        path = database_url.replace("sqlite://", "", 1)
        store = SQLiteJourneyStore(path, max_versions=max_versions)
    else:
        raise ValueError(f"Unsupported database backend: {database_url}")

    if cache is not None:
        store = CachedJourneyStore(store, cache)
    return store


__all__ = [
    "CachedJourneyStore",
    "InMemoryJourneyStore",
    "JourneyStore",
    "SQLiteJourneyStore",
    "SessionSummary",
    "SnapshotRecord",
    "get_store",
]
