"""SQLite connection management and schema for fingerprints and delivery records."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from threading import RLock
from typing import Dict

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS feed_article_field (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        feed_id TEXT NOT NULL,
        field_name TEXT NOT NULL,
        field_value TEXT NOT NULL,
        created_at TEXT NOT NULL,
        UNIQUE (feed_id, field_name, field_value)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS feed_article_custom_comparison (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        feed_id TEXT NOT NULL,
        field_name TEXT NOT NULL,
        created_at TEXT NOT NULL,
        UNIQUE (feed_id, field_name)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS delivery_record (
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        id TEXT NOT NULL,
        feed_id TEXT NOT NULL,
        medium_id TEXT,
        status TEXT NOT NULL,
        error_code TEXT,
        internal_message TEXT,
        created_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_feed_article_field_feed ON feed_article_field(feed_id)",
    "CREATE INDEX IF NOT EXISTS idx_delivery_record_feed_created ON delivery_record(feed_id, created_at)",
)

TABLES = ("feed_article_field", "feed_article_custom_comparison", "delivery_record")


def utc_timestamp(value: datetime | None = None) -> str:
    """Render a UTC timestamp whose lexical order matches chronological order."""

    if value is None:
        value = datetime.now(timezone.utc)
    elif value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="microseconds")


class SQLiteManager:
    """Share one SQLite connection and one lock per database path."""

    def __init__(self) -> None:
        self._connections: Dict[Path, sqlite3.Connection] = {}
        self._locks: Dict[Path, RLock] = {}
        self._lock = RLock()

    def connect(self, path: Path) -> sqlite3.Connection:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            if path not in self._connections:
                conn = sqlite3.connect(path, check_same_thread=False)
                conn.row_factory = sqlite3.Row
                self._connections[path] = conn
                self._locks.setdefault(path, RLock())
                self._ensure_schema(conn)
            return self._connections[path]

    def lock_for(self, path: Path) -> RLock:
        """Return the lock serialising statements against ``path``."""

        path = Path(path)
        with self._lock:
            return self._locks.setdefault(path, RLock())

    def _ensure_schema(self, conn: sqlite3.Connection) -> None:
        for statement in SCHEMA_STATEMENTS:
            conn.execute(statement)
        conn.commit()

    def reset(self, path: Path) -> None:
        path = Path(path)
        with self._lock:
            if path in self._connections:
                self._connections[path].close()
                del self._connections[path]
        if path.exists():
            path.unlink()

    def close_all(self) -> None:
        with self._lock:
            for conn in self._connections.values():
                conn.close()
            self._connections.clear()


__all__ = ["SCHEMA_STATEMENTS", "SQLiteManager", "TABLES", "utc_timestamp"]
