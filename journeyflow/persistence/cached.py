"""Read-through cache in front of another journey store."""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, List, Optional

from ..cache import TTLCache
from .models import SessionSummary, SnapshotRecord
from .store import JourneyStore

logger = logging.getLogger(__name__)


class CachedJourneyStore(JourneyStore):
    """Serve latest snapshots from a TTL cache, writing through to ``store``.

    Only the latest version of each session is cached; explicit version
    lookups always go to the backing store.
    """

    def __init__(self, store: JourneyStore, cache: Optional[TTLCache] = None) -> None:
        self.store = store
        self.cache: TTLCache = cache if cache is not None else TTLCache()
        self.hits = 0
        self.misses = 0

    async def save_snapshot(self, session_id: str, snapshot: Dict[str, Any]) -> int:
        version = await self.store.save_snapshot(session_id, snapshot)
        self.cache.set(session_id, copy.deepcopy(snapshot))
        return version

    async def load_snapshot(
        self, session_id: str, version: Optional[int] = None
    ) -> Optional[Dict[str, Any]]:
        if version is not None:
            return await self.store.load_snapshot(session_id, version)
        cached = self.cache.get(session_id)
        if cached is not None:
            self.hits += 1
            return copy.deepcopy(cached)
        self.misses += 1
        snapshot = await self.store.load_snapshot(session_id)
        if snapshot is not None:
            self.cache.set(session_id, snapshot)
        return snapshot

    async def list_versions(self, session_id: str) -> List[SnapshotRecord]:
        return await self.store.list_versions(session_id)

    async def list_sessions(self) -> List[SessionSummary]:
        return await self.store.list_sessions()

    async def delete_session(self, session_id: str) -> None:
        self.cache.invalidate(session_id)
        await self.store.delete_session(session_id)
        logger.debug(f"Deleted session_id={session_id} and its cache entry")
