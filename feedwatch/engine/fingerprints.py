"""Persistent per-feed field observations and comparison field registrations."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

from ..infra.storage import SQLiteManager, utc_timestamp

# Keeps IN (...) lists well under SQLite's host parameter limit.
_LOOKUP_CHUNK = 500


class FingerprintStore:
    """Remember which ``(field_name, field_value)`` pairs were seen per feed."""

    def __init__(self, manager: SQLiteManager, db_path: Path) -> None:
        self.manager = manager
        self.db_path = Path(db_path)
        self._conn = manager.connect(self.db_path)
        self._lock = manager.lock_for(self.db_path)

    def has_any_observation(self, feed_id: str) -> bool:
        with self._lock:
            cur = self._conn.execute(
                "SELECT 1 FROM feed_article_field WHERE feed_id = ? LIMIT 1", (feed_id,)
            )
            return cur.fetchone() is not None

    def observe(self, feed_id: str, field_name: str, field_value: str) -> None:
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO feed_article_field(feed_id, field_name, field_value, created_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT (feed_id, field_name, field_value) DO NOTHING
                """,
                (feed_id, field_name, field_value, utc_timestamp()),
            )
            self._conn.commit()

    def is_observed(self, feed_id: str, field_name: str, field_value: str) -> bool:
        with self._lock:
            cur = self._conn.execute(
                """
                SELECT 1 FROM feed_article_field
                WHERE feed_id = ? AND field_name = ? AND field_value = ?
                """,
                (feed_id, field_name, field_value),
            )
            return cur.fetchone() is not None

    def observed_values(self, feed_id: str, field_name: str, candidates: Iterable[str]) -> set[str]:
        """Return the subset of ``candidates`` already observed for the field."""

        values = list(dict.fromkeys(candidates))
        found: set[str] = set()
        with self._lock:
            for start in range(0, len(values), _LOOKUP_CHUNK):
                chunk = values[start : start + _LOOKUP_CHUNK]
                placeholders = ", ".join("?" for _ in chunk)
                cur = self._conn.execute(
                    f"""
                    SELECT field_value FROM feed_article_field
                    WHERE feed_id = ? AND field_name = ? AND field_value IN ({placeholders})
                    """,
                    (feed_id, field_name, *chunk),
                )
                found.update(row["field_value"] for row in cur.fetchall())
        return found

    def count(self, feed_id: str, field_name: str | None = None) -> int:
        query = "SELECT COUNT(*) FROM feed_article_field WHERE feed_id = ?"
        params: tuple[str, ...] = (feed_id,)
        if field_name is not None:
            query += " AND field_name = ?"
            params += (field_name,)
        with self._lock:
            return int(self._conn.execute(query, params).fetchone()[0])

    def forget_feed(self, feed_id: str) -> int:
        """Delete every observation and registration of a removed feed."""

        with self._lock:
            removed = self._conn.execute(
                "DELETE FROM feed_article_field WHERE feed_id = ?", (feed_id,)
            ).rowcount
            self._conn.execute(
                "DELETE FROM feed_article_custom_comparison WHERE feed_id = ?", (feed_id,)
            )
            self._conn.commit()
        return removed


class ComparisonRegistry:
    """Track which extra fields act as comparison dimensions for a feed."""

    def __init__(self, manager: SQLiteManager, db_path: Path) -> None:
        self.manager = manager
        self.db_path = Path(db_path)
        self._conn = manager.connect(self.db_path)
        self._lock = manager.lock_for(self.db_path)

    def register_if_absent(self, feed_id: str, field_name: str) -> None:
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO feed_article_custom_comparison(feed_id, field_name, created_at)
                VALUES (?, ?, ?)
                ON CONFLICT (feed_id, field_name) DO NOTHING
                """,
                (feed_id, field_name, utc_timestamp()),
            )
            self._conn.commit()

    def list_active_fields(self, feed_id: str) -> set[str]:
        with self._lock:
            cur = self._conn.execute(
                "SELECT field_name FROM feed_article_custom_comparison WHERE feed_id = ?",
                (feed_id,),
            )
            return {row["field_name"] for row in cur.fetchall()}


__all__ = ["ComparisonRegistry", "FingerprintStore"]
