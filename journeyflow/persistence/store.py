"""Store abstraction for journey snapshot persistence."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol

from .models import SessionSummary, SnapshotRecord


class JourneyStore(Protocol):
    """Protocol for journey snapshot persistence backends."""

    async def save_snapshot(self, session_id: str, snapshot: Dict[str, Any]) -> int:
        """Store a new version of the session snapshot and return its number."""

    async def load_snapshot(
        self, session_id: str, version: Optional[int] = None
    ) -> Optional[Dict[str, Any]]:
        """Return the latest (or the given) version, or ``None``."""

    async def list_versions(self, session_id: str) -> List[SnapshotRecord]:
        """Return retained versions, oldest first."""

    async def list_sessions(self) -> List[SessionSummary]:
        """Return one summary per stored session."""

    async def delete_session(self, session_id: str) -> None:
        """Remove every version of a session."""
