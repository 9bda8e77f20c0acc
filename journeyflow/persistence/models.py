"""Data models for persisted journey snapshots."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel


class SnapshotRecord(BaseModel):
    """One stored version of a session snapshot."""

    session_id: str
    version: int
    saved_at: datetime
    snapshot: Dict[str, Any]


class SessionSummary(BaseModel):
    """Latest stored version of a session, as listed by a store."""

    session_id: str
    version: int
    saved_at: datetime
    current_step: Optional[str] = None
    completed_steps: int = 0
    expired: bool = False

    @classmethod
    def from_record(cls, record: SnapshotRecord) -> "SessionSummary":
        snapshot = record.snapshot
        return cls(
            session_id=record.session_id,
            version=record.version,
            saved_at=record.saved_at,
            current_step=snapshot.get("current_step"),
            completed_steps=len(snapshot.get("completed_steps") or []),
            expired=bool(snapshot.get("expired", False)),
        )
