"""In-memory implementation of the journey store."""

from __future__ import annotations

import copy
from typing import Any, Dict, List, Optional

from ..contracts import utcnow
from .models import SessionSummary, SnapshotRecord
from .store import JourneyStore


class InMemoryJourneyStore(JourneyStore):
    """Store snapshots in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts.
    """

    def __init__(self, max_versions: int = 10) -> None:
        self.max_versions = max_versions
        self._sessions: Dict[str, List[SnapshotRecord]] = {}

    async def save_snapshot(self, session_id: str, snapshot: Dict[str, Any]) -> int:
        versions = self._sessions.setdefault(session_id, [])
        version = versions[-1].version + 1 if versions else 1
        versions.append(
            SnapshotRecord(
                session_id=session_id,
                version=version,
                saved_at=utcnow(),
                snapshot=copy.deepcopy(snapshot),
            )
        )
        if self.max_versions > 0:
            del versions[: -self.max_versions]
        return version

    async def load_snapshot(
        self, session_id: str, version: Optional[int] = None
    ) -> Optional[Dict[str, Any]]:
        versions = self._sessions.get(session_id)
        if not versions:
            return None
        if version is None:
            return copy.deepcopy(versions[-1].snapshot)
        for record in versions:
            if record.version == version:
                return copy.deepcopy(record.snapshot)
        return None

    async def list_versions(self, session_id: str) -> List[SnapshotRecord]:
        return list(self._sessions.get(session_id, []))

    async def list_sessions(self) -> List[SessionSummary]:
        return [
            SessionSummary.from_record(versions[-1])
            for versions in self._sessions.values()
            if versions
        ]

    async def delete_session(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)
