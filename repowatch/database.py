"""SQLite database layer for the watch registry blob and cycle state."""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class Database:
    """Manages SQLite storage for repowatch state."""

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = str(db_path)
        self._conn: sqlite3.Connection | None = None
        self._connect()
        self._create_tables()

    def _connect(self) -> None:
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._connect()
        return self._conn  # type: ignore[return-value]

    def _create_tables(self) -> None:
        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS watcher_state (
                watcher_name TEXT PRIMARY KEY,
                last_check_at TEXT,
                last_successful_at TEXT,
                consecutive_failures INTEGER DEFAULT 0,
                metadata TEXT
            );
        """)
        self.conn.commit()

    # -- kv_store operations --

    def get_value(self, key: str) -> str | None:
        """Return the raw value stored under key, or None."""
        row = self.conn.execute(
            "SELECT value FROM kv_store WHERE key=?", (key,)
        ).fetchone()
        return row["value"] if row else None

    def put_value(self, key: str, value: str) -> None:
        """Store value under key, replacing any existing value."""
        now = datetime.now(timezone.utc).isoformat()
        self.conn.execute(
            """INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
               ON CONFLICT(key) DO UPDATE
               SET value=excluded.value, updated_at=excluded.updated_at""",
            (key, value, now),
        )
        self.conn.commit()

    # -- watcher_state operations --

    def get_watcher_state(self, watcher_name: str) -> dict[str, Any] | None:
        """Get the current state for a watcher."""
        row = self.conn.execute(
            "SELECT * FROM watcher_state WHERE watcher_name=?",
            (watcher_name,),
        ).fetchone()
        if row is None:
            return None
        result = dict(row)
        if result.get("metadata"):
            result["metadata"] = json.loads(result["metadata"])
        else:
            result["metadata"] = {}
        return result

    def update_watcher_state(
        self,
        watcher_name: str,
        successful: bool,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Record the outcome of a cycle.

        A success clears the failure streak, a failure extends it. Metadata
        describes the last cycle that supplied it and is replaced wholesale;
        a cycle without metadata leaves the stored snapshot in place.
        """
        now = datetime.now(timezone.utc).isoformat()
        meta = json.dumps(metadata) if metadata is not None else None
        self.conn.execute(
            """INSERT INTO watcher_state
               (watcher_name, last_check_at, last_successful_at,
                consecutive_failures, metadata)
               VALUES (?, ?, ?, ?, COALESCE(?, '{}'))
               ON CONFLICT(watcher_name) DO UPDATE
               SET last_check_at=excluded.last_check_at,
                   last_successful_at=COALESCE(excluded.last_successful_at,
                                               last_successful_at),
                   consecutive_failures=CASE WHEN ? THEN 0
                                             ELSE consecutive_failures + 1 END,
                   metadata=COALESCE(?, metadata)""",
            (watcher_name, now, now if successful else None,
             0 if successful else 1, meta, successful, meta),
        )
        self.conn.commit()

    def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None
