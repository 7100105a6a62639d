"""
SQLite Event Store - Append-only event log with idempotency

The event store is the authoritative record of every federation. It provides:
- Append-only semantics (events never modified or deleted)
- Idempotency via command_id (same command = same events)
- Optimistic locking via stream versioning (one stream per federation)
- Deterministic replay, optionally up to a historical version
"""

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator

from trust_hierarchies.kernel.errors import (
    CommandIdempotencyViolation,
    EventStoreError,
    StreamVersionConflict,
)
from trust_hierarchies.kernel.events import Event
from trust_hierarchies.kernel.logging import get_logger
from trust_hierarchies.kernel.metrics import (
    events_appended_total,
    events_loaded_total,
    stream_version_conflicts_total,
)
from trust_hierarchies.kernel.retry import retry_on_sqlite_lock

logger = get_logger(__name__)

_EVENT_COLUMNS = """
    event_id, stream_id, stream_type, version,
    command_id, event_type, occurred_at, actor_id, payload_json
"""


class SQLiteEventStore:
    """
    SQLite-based event store with append-only semantics

    WAL mode gives crash safety and lets validators read while a writer
    appends.

    Schema:
    - events table: append-only event log
    - Unique constraint: (stream_id, version)
    - Indices: stream_id, command_id, stream_type
    """

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self._initialize_schema()

    def _initialize_schema(self) -> None:
        """Create tables and indices if they don't exist"""
        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")

            conn.execute("""
                CREATE TABLE IF NOT EXISTS events (
                    event_id TEXT PRIMARY KEY,
                    stream_id TEXT NOT NULL,
                    stream_type TEXT NOT NULL,
                    version INTEGER NOT NULL,
                    command_id TEXT NOT NULL,
                    event_type TEXT NOT NULL,
                    occurred_at TEXT NOT NULL,
                    actor_id TEXT,
                    payload_json TEXT NOT NULL,

                    UNIQUE(stream_id, version)
                )
            """)

            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_events_stream "
                "ON events(stream_id, version)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_events_command ON events(command_id)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_events_stream_type ON events(stream_type)"
            )

            conn.commit()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Open a connection that is always closed, committed or not"""
        conn = sqlite3.connect(str(self.db_path), timeout=5.0)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    @retry_on_sqlite_lock()
    def append(
        self,
        stream_id: str,
        expected_version: int,
        events: list[Event],
    ) -> list[Event]:
        """
        Append events to a stream with optimistic locking

        All events are written in one transaction or none are.

        Args:
            stream_id: Federation identifier
            expected_version: Version the caller based its decision on
            events: Events to append (must have sequential versions)

        Returns:
            The appended events (or the previously stored ones if the command
            was already processed for this stream)

        Raises:
            StreamVersionConflict: If stream version doesn't match expected
            EventStoreError: On other database errors
        """
        if not events:
            return []

        first_command_id = events[0].command_id
        existing_in_stream = [
            e for e in self._get_events_by_command_id(first_command_id)
            if e.stream_id == stream_id
        ]
        if existing_in_stream:
            logger.debug(
                "Command already applied, returning stored events",
                stream_id=stream_id,
                command_id=first_command_id,
            )
            return existing_in_stream

        with self._connect() as conn:
            try:
                current_version = self._get_stream_version(conn, stream_id)
                if current_version != expected_version:
                    stream_version_conflicts_total.labels(
                        stream_type=events[0].stream_type
                    ).inc()
                    raise StreamVersionConflict(stream_id, expected_version, current_version)

                for event in events:
                    conn.execute(
                        f"INSERT INTO events ({_EVENT_COLUMNS}) "
                        "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                        (
                            event.event_id,
                            event.stream_id,
                            event.stream_type,
                            event.version,
                            event.command_id,
                            event.event_type,
                            event.occurred_at.isoformat(),
                            event.actor_id,
                            json.dumps(event.payload),
                        ),
                    )

                conn.commit()

            except sqlite3.IntegrityError as e:
                conn.rollback()
                error_msg = str(e).lower()

                if "stream_id" in error_msg and "version" in error_msg:
                    current = self._get_stream_version(conn, stream_id)
                    stream_version_conflicts_total.labels(
                        stream_type=events[0].stream_type
                    ).inc()
                    raise StreamVersionConflict(stream_id, expected_version, current) from e

                if "event_id" in error_msg:
                    raise CommandIdempotencyViolation(first_command_id) from e

                raise EventStoreError(f"Failed to append events: {e}") from e

            except sqlite3.OperationalError:
                # Lock contention - let the retry decorator have another go
                conn.rollback()
                raise

            except StreamVersionConflict:
                raise

            except Exception as e:
                conn.rollback()
                raise EventStoreError(f"Unexpected error appending events: {e}") from e

        for event in events:
            events_appended_total.labels(
                stream_type=event.stream_type, event_type=event.event_type
            ).inc()
        return events

    def load_stream(self, stream_id: str, up_to_version: int | None = None) -> list[Event]:
        """
        Load the events of a stream in version order

        Args:
            stream_id: Federation identifier
            up_to_version: Stop at this version (inclusive) to see historical state

        Returns:
            List of events in version order (empty if stream doesn't exist)
        """
        query = f"SELECT {_EVENT_COLUMNS} FROM events WHERE stream_id = ?"
        params: list = [stream_id]
        if up_to_version is not None:
            query += " AND version <= ?"
            params.append(up_to_version)
        query += " ORDER BY version ASC"

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()

        events = [self._row_to_event(row) for row in rows]
        if events:
            events_loaded_total.labels(stream_type=events[0].stream_type).inc(len(events))
        return events

    def list_streams(self, stream_type: str | None = None) -> list[str]:
        """List stream ids, oldest stream first"""
        query = "SELECT stream_id, MIN(occurred_at) AS first_at FROM events"
        params: list = []
        if stream_type:
            query += " WHERE stream_type = ?"
            params.append(stream_type)
        query += " GROUP BY stream_id ORDER BY first_at ASC, stream_id ASC"

        with self._connect() as conn:
            return [row["stream_id"] for row in conn.execute(query, params).fetchall()]

    def get_stream_version(self, stream_id: str) -> int:
        """Current version of a stream (0 if stream doesn't exist)"""
        with self._connect() as conn:
            return self._get_stream_version(conn, stream_id)

    def _get_stream_version(self, conn: sqlite3.Connection, stream_id: str) -> int:
        row = conn.execute(
            "SELECT MAX(version) FROM events WHERE stream_id = ?",
            (stream_id,),
        ).fetchone()
        return row[0] if row[0] is not None else 0

    def _get_events_by_command_id(self, command_id: str) -> list[Event]:
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT {_EVENT_COLUMNS} FROM events "
                "WHERE command_id = ? ORDER BY version ASC",
                (command_id,),
            ).fetchall()
            return [self._row_to_event(row) for row in rows]

    def _row_to_event(self, row: sqlite3.Row) -> Event:
        return Event(
            event_id=row["event_id"],
            stream_id=row["stream_id"],
            stream_type=row["stream_type"],
            version=row["version"],
            command_id=row["command_id"],
            event_type=row["event_type"],
            occurred_at=datetime.fromisoformat(row["occurred_at"]),
            actor_id=row["actor_id"],
            payload=json.loads(row["payload_json"]),
        )

    def count_events(self) -> int:
        """Get total number of events in store"""
        with self._connect() as conn:
            return conn.execute("SELECT COUNT(*) FROM events").fetchone()[0]
