"""
Projection Store - Persisted federation snapshots

A snapshot is a materialized read model: the JSON form of a federation at a
known stream version. Cached validators save one here so they can start (and
keep answering) without replaying the event log.
"""

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

from pydantic import BaseModel


class ProjectionState(BaseModel):
    """Stored snapshot together with the stream version it reflects"""

    name: str
    position_version: int = 0
    state: dict[str, Any]
    updated_at: datetime


class SQLiteProjectionStore:
    """
    SQLite-based projection store

    Schema:
    - projections table: name, stream version, state JSON, update time
    """

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self._initialize_schema()

    def _initialize_schema(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS projections (
                    name TEXT PRIMARY KEY,
                    position_version INTEGER NOT NULL,
                    state_json TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.commit()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def save(
        self,
        name: str,
        state: dict[str, Any],
        position_version: int = 0,
    ) -> None:
        """
        Save or replace a snapshot

        Args:
            name: Snapshot name (e.g., "federation:<id>")
            state: JSON-serializable state
            position_version: Stream version the state reflects
        """
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO projections (name, position_version, state_json, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(name) DO UPDATE SET
                    position_version = excluded.position_version,
                    state_json = excluded.state_json,
                    updated_at = excluded.updated_at
            """,
                (
                    name,
                    position_version,
                    json.dumps(state),
                    datetime.now(timezone.utc).isoformat(),
                ),
            )
            conn.commit()

    def load(self, name: str) -> ProjectionState | None:
        """Load a snapshot by name, None if it was never saved"""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT name, position_version, state_json, updated_at "
                "FROM projections WHERE name = ?",
                (name,),
            ).fetchone()

        if not row:
            return None

        return ProjectionState(
            name=row["name"],
            position_version=row["position_version"],
            state=json.loads(row["state_json"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def delete(self, name: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM projections WHERE name = ?", (name,))
            conn.commit()

    def list_projections(self) -> list[str]:
        with self._connect() as conn:
            rows = conn.execute("SELECT name FROM projections ORDER BY name").fetchall()
            return [row["name"] for row in rows]
