"""
Thread-safe SQLite state store for feed-mirror.

The store holds the only durable state of the sync engine: one watermark
per feed and the summary of the most recent pass.

Schema:
    watermarks:     One row per feed (feed_key, last_published_at, updated_at)
    run_summary:    A single row (id = 1) overwritten after every pass

Watermark Invariant:
    last_published_at never moves backward. save_watermarks() and
    commit_pass() upsert with MAX(stored, new), so even a buggy caller
    cannot rewind a feed and cause a resync storm.

Usage:
    db = Database(storage_dir / "database.db")

    watermarks = db.load_watermarks()          # {"UC...": 1700000000000}
    db.commit_pass(new_watermarks, summary)    # one transaction
    db.load_run_summary()                      # {"mode": ..., "items_added": ...}
"""

import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Generator, Mapping

from feed_mirror.core.exceptions import DatabaseError


DATABASE_VERSION = 1


_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS watermarks (
    feed_key TEXT PRIMARY KEY,
    last_published_at INTEGER NOT NULL DEFAULT 0,
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS run_summary (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    mode TEXT,
    started_at INTEGER NOT NULL,
    finished_at INTEGER,
    items_added INTEGER NOT NULL DEFAULT 0,
    error TEXT
);
"""

_UPSERT_WATERMARK_SQL = """
    INSERT INTO watermarks (feed_key, last_published_at, updated_at)
    VALUES (?, ?, ?)
    ON CONFLICT(feed_key) DO UPDATE SET
        last_published_at = MAX(watermarks.last_published_at, excluded.last_published_at),
        updated_at = excluded.updated_at
"""

_REPLACE_SUMMARY_SQL = """
    INSERT OR REPLACE INTO run_summary (id, mode, started_at, finished_at, items_added, error)
    VALUES (1, :mode, :started_at, :finished_at, :items_added, :error)
"""


class Database:
    """
    Thread-safe SQLite state store.

    Uses a single persistent connection with thread locking for safety.
    All public methods acquire self._lock before executing, so the async
    engine can call them through asyncio.to_thread().
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self._lock = threading.Lock()
        self._conn: sqlite3.Connection | None = None

        if not db_path.parent.exists():
            raise DatabaseError(
                f"Parent directory does not exist: {db_path.parent}",
                details={"path": str(db_path.parent)}
            )

        try:
            self._init_database()
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to initialize database: {e}",
                details={"path": str(db_path)}
            ) from e

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Get the persistent database connection as a context manager.

        The connection is created once and reused for all operations.
        sqlite3.Error raised inside the block is rolled back and re-raised
        as DatabaseError.
        """
        if self._conn is None:
            self._conn = sqlite3.connect(
                str(self.db_path),
                timeout=30.0,
                check_same_thread=False  # We handle thread safety with _lock
            )
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode = WAL")
        try:
            yield self._conn
        except sqlite3.Error as e:
            self._conn.rollback()
            raise DatabaseError(
                f"Database operation failed: {e}",
                details={"path": str(self.db_path), "original_error": str(e)}
            ) from e

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def _init_database(self) -> None:
        with self._get_connection() as conn:
            conn.executescript(_SCHEMA_SQL)

            cursor = conn.execute("SELECT version FROM schema_version LIMIT 1")
            row = cursor.fetchone()

            if row is None:
                conn.execute("INSERT INTO schema_version (version) VALUES (?)", (DATABASE_VERSION,))
            elif row[0] != DATABASE_VERSION:
                raise DatabaseError(
                    f"Database version mismatch: expected {DATABASE_VERSION}, got {row[0]}",
                    details={"expected": DATABASE_VERSION, "actual": row[0]}
                )
            conn.commit()

    def _now_iso(self) -> str:
        return datetime.now(timezone.utc).isoformat()

    def _write_watermarks(self, conn: sqlite3.Connection, watermarks: Mapping[str, int]) -> None:
        now = self._now_iso()
        conn.executemany(
            _UPSERT_WATERMARK_SQL,
            [(feed_key, int(value), now) for feed_key, value in watermarks.items()]
        )

    # =========================================================================
    # Watermarks
    # =========================================================================

    def load_watermarks(self) -> dict[str, int]:
        """
        Load every stored watermark.

        Returns:
            Mapping feed_key -> last published timestamp (ms).
            Feeds never parsed successfully are absent (treated as 0).
        """
        with self._lock:
            with self._get_connection() as conn:
                cursor = conn.execute("SELECT feed_key, last_published_at FROM watermarks")
                return {row["feed_key"]: row["last_published_at"] for row in cursor.fetchall()}

    def get_watermark(self, feed_key: str) -> int:
        """Return the watermark of one feed, 0 if it was never synced."""
        with self._lock:
            with self._get_connection() as conn:
                cursor = conn.execute(
                    "SELECT last_published_at FROM watermarks WHERE feed_key = ?",
                    (feed_key,)
                )
                row = cursor.fetchone()
                return row[0] if row else 0

    def save_watermarks(self, watermarks: Mapping[str, int]) -> None:
        """
        Upsert watermarks; stored values never decrease.

        Args:
            watermarks: Mapping feed_key -> published timestamp (ms).
                        Feeds not in the mapping are left untouched.
        """
        with self._lock:
            with self._get_connection() as conn:
                self._write_watermarks(conn, watermarks)
                conn.commit()

    # =========================================================================
    # Run Summary
    # =========================================================================

    def load_run_summary(self) -> dict[str, Any] | None:
        """Return the summary of the last pass, or None if no pass ever ran."""
        with self._lock:
            with self._get_connection() as conn:
                cursor = conn.execute(
                    "SELECT mode, started_at, finished_at, items_added, error "
                    "FROM run_summary WHERE id = 1"
                )
                row = cursor.fetchone()
                return dict(row) if row else None

    def save_run_summary(self, summary: Mapping[str, Any]) -> None:
        """
        Overwrite the stored run summary.

        Args:
            summary: Mapping with keys mode, started_at, finished_at,
                     items_added and error (see RunSummary.to_dict()).
        """
        with self._lock:
            with self._get_connection() as conn:
                conn.execute(_REPLACE_SUMMARY_SQL, dict(summary))
                conn.commit()

    def commit_pass(self, watermarks: Mapping[str, int], summary: Mapping[str, Any]) -> None:
        """
        Persist the end-of-pass state in a single transaction.

        Either both the watermarks and the run summary are written, or
        (on any SQLite error) neither is and the previous values remain.

        Raises:
            DatabaseError: If the transaction fails.
        """
        with self._lock:
            with self._get_connection() as conn:
                self._write_watermarks(conn, watermarks)
                conn.execute(_REPLACE_SUMMARY_SQL, dict(summary))
                conn.commit()

    # =========================================================================
    # Maintenance
    # =========================================================================

    def clear_state(self) -> None:
        """Delete all watermarks and the run summary (used by --reset)."""
        with self._lock:
            with self._get_connection() as conn:
                conn.execute("DELETE FROM watermarks")
                conn.execute("DELETE FROM run_summary")
                conn.commit()
