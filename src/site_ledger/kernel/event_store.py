"""
SQLite Event Store - Append-only ledger log with optimistic locking

The event store is the source of truth for every budget, cost entry,
invoice and payment. It provides:
- Append-only semantics (events never modified or deleted)
- Optimistic locking via per-stream versions
- Atomic multi-stream appends: one operation touching a budget and a cost
  entry (or a payment and its invoices) commits all of its events or none
- Idempotency via command_id
"""

import json
import sqlite3
from collections import OrderedDict
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator

from site_ledger.kernel.errors import (
    EventStoreError,
    StreamVersionConflict,
)
from site_ledger.kernel.events import Event
from site_ledger.kernel.logging import get_logger
from site_ledger.kernel.metrics import (
    events_appended_total,
    events_loaded_total,
    stream_version_conflicts_total,
)
from site_ledger.kernel.retry import retry_on_sqlite_lock

logger = get_logger(__name__)

_EVENT_COLUMNS = """
    event_id, stream_id, stream_type, version,
    command_id, event_type, occurred_at, actor_id, payload_json
"""


class SQLiteEventStore:
    """
    SQLite-based event store with append-only semantics

    Uses WAL mode for crash safety and concurrent readers. Writers take the
    database write lock up front (BEGIN IMMEDIATE) so the version check and
    the inserts of one append are a single serializable step.

    Schema:
    - events table: append-only event log
    - Unique constraint: (stream_id, version)
    - Indices: stream_id, event_type, occurred_at, command_id
    """

    def __init__(self, db_path: str | Path, busy_timeout_seconds: float = 5.0) -> None:
        """
        Initialize event store with SQLite database

        Args:
            db_path: Path to SQLite database file
            busy_timeout_seconds: How long a writer waits for the write lock
        """
        self.db_path = Path(db_path)
        self.busy_timeout_seconds = busy_timeout_seconds
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
                "CREATE INDEX IF NOT EXISTS idx_events_type ON events(event_type)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_events_time ON events(occurred_at)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_events_command ON events(command_id)"
            )

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """
        Context manager for database connections

        Connections run in autocommit mode; transactions are opened
        explicitly where a write needs them.
        """
        conn = sqlite3.connect(
            str(self.db_path),
            timeout=self.busy_timeout_seconds,
            isolation_level=None,
        )
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def append(
        self,
        stream_id: str,
        expected_version: int,
        events: list[Event],
    ) -> list[Event]:
        """
        Append events to a single stream with optimistic locking

        Args:
            stream_id: Entity identifier
            expected_version: Expected current stream version
            events: Events to append (sequential versions after expected_version)

        Returns:
            The appended events (or the earlier ones if command_id was seen)

        Raises:
            StreamVersionConflict: If stream version doesn't match expected
            EventStoreError: If events don't belong to stream_id
        """
        if any(event.stream_id != stream_id for event in events):
            raise EventStoreError(f"All events must belong to stream {stream_id}")
        if events and events[0].version != expected_version + 1:
            raise EventStoreError(
                f"First event version {events[0].version} does not follow "
                f"expected version {expected_version}"
            )
        return self.append_atomic(events)

    @retry_on_sqlite_lock()
    def append_atomic(self, events: list[Event]) -> list[Event]:
        """
        Append events to one or more streams in a single transaction

        Events are grouped by stream in the order they first appear. Each
        stream's expected version is the version before its first event, so
        a handler that read a stream at version N and emits version N+1 gets
        a conflict if anyone else wrote in between.

        All events share the first event's command_id for idempotency: if
        that command already committed, its events are returned unchanged.

        Args:
            events: Events to append, across any number of streams

        Returns:
            The appended events

        Raises:
            StreamVersionConflict: If any stream moved since it was read
            EventStoreError: On malformed batches or other database errors
        """
        if not events:
            return []

        streams = self._group_by_stream(events)
        command_id = events[0].command_id

        with self._connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                existing = self._events_by_command_id(conn, command_id)
                if existing:
                    conn.execute("ROLLBACK")
                    logger.info(
                        "Command already processed, returning recorded events",
                        command_id=command_id,
                        event_count=len(existing),
                    )
                    return existing

                for stream_id, stream_events in streams.items():
                    expected_version = stream_events[0].version - 1
                    current_version = self._get_stream_version(conn, stream_id)
                    if current_version != expected_version:
                        stream_version_conflicts_total.labels(
                            stream_type=stream_events[0].stream_type
                        ).inc()
                        raise StreamVersionConflict(
                            stream_id, expected_version, current_version
                        )

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

                conn.execute("COMMIT")

            except StreamVersionConflict:
                conn.execute("ROLLBACK")
                raise

            except sqlite3.IntegrityError as e:
                conn.execute("ROLLBACK")
                raise EventStoreError(f"Failed to append events: {e}") from e

            except sqlite3.OperationalError:
                # Lock contention, retried by the decorator
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise

            except Exception as e:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise EventStoreError(f"Unexpected error appending events: {e}") from e

        for event in events:
            events_appended_total.labels(
                stream_type=event.stream_type, event_type=event.event_type
            ).inc()

        logger.debug(
            "Events appended",
            command_id=command_id,
            streams=list(streams.keys()),
            event_count=len(events),
        )
        return events

    @staticmethod
    def _group_by_stream(events: list[Event]) -> "OrderedDict[str, list[Event]]":
        """Group events per stream and check their versions are consecutive"""
        streams: OrderedDict[str, list[Event]] = OrderedDict()
        for event in events:
            streams.setdefault(event.stream_id, []).append(event)

        for stream_id, stream_events in streams.items():
            for previous, current in zip(stream_events, stream_events[1:]):
                if current.version != previous.version + 1:
                    raise EventStoreError(
                        f"Events for stream {stream_id} must have consecutive versions"
                    )
        return streams

    @retry_on_sqlite_lock()
    def load_stream(self, stream_id: str) -> list[Event]:
        """
        Load all events for a stream in version order

        Args:
            stream_id: Entity identifier

        Returns:
            List of events in version order (empty if stream doesn't exist)
        """
        with self._connect() as conn:
            cursor = conn.execute(
                f"SELECT {_EVENT_COLUMNS} FROM events "
                "WHERE stream_id = ? ORDER BY version ASC",
                (stream_id,),
            )
            events = [self._row_to_event(row) for row in cursor.fetchall()]

        if events:
            events_loaded_total.labels(stream_type=events[0].stream_type).inc(len(events))
        return events

    def load_all_events(self) -> list[Event]:
        """
        Load every event in commit order (for read model rebuilding)

        Returns:
            List of events ordered by insertion
        """
        with self._connect() as conn:
            cursor = conn.execute(
                f"SELECT {_EVENT_COLUMNS} FROM events ORDER BY rowid ASC"
            )
            return [self._row_to_event(row) for row in cursor.fetchall()]

    def query_events(
        self,
        *,
        stream_type: str | None = None,
        event_type: str | None = None,
        from_time: datetime | None = None,
        to_time: datetime | None = None,
        limit: int | None = None,
    ) -> list[Event]:
        """
        Query events by various criteria

        Args:
            stream_type: Filter by stream type (e.g., "budget", "invoice")
            event_type: Filter by event type (e.g., "BudgetCharged")
            from_time: Events at or after this time
            to_time: Events at or before this time
            limit: Maximum number of events to return

        Returns:
            List of matching events in commit order
        """
        conditions = []
        params: list[object] = []

        if stream_type:
            conditions.append("stream_type = ?")
            params.append(stream_type)

        if event_type:
            conditions.append("event_type = ?")
            params.append(event_type)

        if from_time:
            conditions.append("occurred_at >= ?")
            params.append(from_time.isoformat())

        if to_time:
            conditions.append("occurred_at <= ?")
            params.append(to_time.isoformat())

        where_clause = " AND ".join(conditions) if conditions else "1=1"
        query = f"SELECT {_EVENT_COLUMNS} FROM events WHERE {where_clause} ORDER BY rowid ASC"

        if limit:
            query += " LIMIT ?"
            params.append(limit)

        with self._connect() as conn:
            cursor = conn.execute(query, params)
            return [self._row_to_event(row) for row in cursor.fetchall()]

    def get_stream_version(self, stream_id: str) -> int:
        """
        Get current version of a stream

        Returns:
            Current stream version (0 if stream doesn't exist)
        """
        with self._connect() as conn:
            return self._get_stream_version(conn, stream_id)

    def _get_stream_version(self, conn: sqlite3.Connection, stream_id: str) -> int:
        cursor = conn.execute(
            "SELECT MAX(version) FROM events WHERE stream_id = ?",
            (stream_id,),
        )
        row = cursor.fetchone()
        return row[0] if row[0] is not None else 0

    def load_command_events(self, command_id: str) -> list[Event]:
        """Events recorded by a command (empty if it never committed)"""
        with self._connect() as conn:
            return self._events_by_command_id(conn, command_id)

    def _events_by_command_id(
        self, conn: sqlite3.Connection, command_id: str
    ) -> list[Event]:
        cursor = conn.execute(
            f"SELECT {_EVENT_COLUMNS} FROM events WHERE command_id = ? ORDER BY rowid ASC",
            (command_id,),
        )
        return [self._row_to_event(row) for row in cursor.fetchall()]

    def _row_to_event(self, row: sqlite3.Row) -> Event:
        """Convert SQLite row to Event object"""
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

    def count_streams(self) -> int:
        """Get total number of distinct streams"""
        with self._connect() as conn:
            return conn.execute(
                "SELECT COUNT(DISTINCT stream_id) FROM events"
            ).fetchone()[0]
