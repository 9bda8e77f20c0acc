"""SQLite implementation of the journey store."""

from __future__ import annotations

import asyncio
import json
import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..contracts import utcnow
from .models import SessionSummary, SnapshotRecord
from .store import JourneyStore


class SQLiteJourneyStore(JourneyStore):
    """Persist versioned session snapshots using SQLite."""

    def __init__(self, db_path: str | Path, max_versions: int = 10):
        self.db_path = str(db_path)
        self.max_versions = max_versions
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        # Guards the shared connection across to_thread workers.
        self._lock = threading.Lock()
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS snapshots (
                session_id TEXT NOT NULL,
                version INTEGER NOT NULL,
                saved_at TEXT NOT NULL,
                snapshot TEXT NOT NULL,
                PRIMARY KEY (session_id, version)
            )
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> None:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            self._conn.commit()

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchall()

    def _insert_version(self, session_id: str, snapshot: Dict[str, Any]) -> int:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(
                "SELECT COALESCE(MAX(version), 0) FROM snapshots WHERE session_id = ?",
                (session_id,),
            )
            version = cur.fetchone()[0] + 1
            cur.execute(
                "INSERT INTO snapshots (session_id, version, saved_at, snapshot) VALUES (?, ?, ?, ?)",
                (session_id, version, utcnow().isoformat(), json.dumps(snapshot)),
            )
            if self.max_versions > 0:
                cur.execute(
                    "DELETE FROM snapshots WHERE session_id = ? AND version <= ?",
                    (session_id, version - self.max_versions),
                )
            self._conn.commit()
            return version

    @staticmethod
    def _record(row: sqlite3.Row) -> SnapshotRecord:
        return SnapshotRecord(
            session_id=row["session_id"],
            version=row["version"],
            saved_at=datetime.fromisoformat(row["saved_at"]),
            snapshot=json.loads(row["snapshot"]),
        )

    # ------------------------------------------------------------------
    # Store API
    async def save_snapshot(self, session_id: str, snapshot: Dict[str, Any]) -> int:
        return await asyncio.to_thread(self._insert_version, session_id, snapshot)

    async def load_snapshot(
        self, session_id: str, version: Optional[int] = None
    ) -> Optional[Dict[str, Any]]:
        if version is None:
            row = await asyncio.to_thread(
                self._fetchone,
                "SELECT snapshot FROM snapshots WHERE session_id = ? ORDER BY version DESC LIMIT 1",
                session_id,
            )
        else:
            row = await asyncio.to_thread(
                self._fetchone,
                "SELECT snapshot FROM snapshots WHERE session_id = ? AND version = ?",
                session_id,
                version,
            )
        if not row:
            return None
        return json.loads(row["snapshot"])

    async def list_versions(self, session_id: str) -> List[SnapshotRecord]:
        rows = await asyncio.to_thread(
            self._fetchall,
            "SELECT session_id, version, saved_at, snapshot FROM snapshots WHERE session_id = ? ORDER BY version",
            session_id,
        )
        return [self._record(row) for row in rows]

    async def list_sessions(self) -> List[SessionSummary]:
        rows = await asyncio.to_thread(
            self._fetchall,
            """
            SELECT s.session_id, s.version, s.saved_at, s.snapshot
            FROM snapshots s
            JOIN (
                SELECT session_id, MAX(version) AS version FROM snapshots GROUP BY session_id
            ) latest ON latest.session_id = s.session_id AND latest.version = s.version
            ORDER BY s.session_id
            """,
        )
        return [SessionSummary.from_record(self._record(row)) for row in rows]

    async def delete_session(self, session_id: str) -> None:
        await asyncio.to_thread(
            self._execute, "DELETE FROM snapshots WHERE session_id = ?", session_id
        )

    def close(self) -> None:
        with self._lock:
            self._conn.close()
