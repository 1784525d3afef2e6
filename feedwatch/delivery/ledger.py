"""Append-only ledger of delivery outcomes."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Sequence

from ..infra.storage import SQLiteManager, utc_timestamp
from .types import QUOTA_STATUSES, ArticleDeliveryState, ArticleDeliveryStatus


@dataclass(frozen=True, slots=True)
class DeliveryRecord:
    """One persisted delivery outcome row."""

    id: str
    feed_id: str
    medium_id: str | None
    status: ArticleDeliveryStatus
    error_code: str | None
    internal_message: str | None
    created_at: str


class DeliveryLedger:
    """Persist one record per delivery attempt and count them over time windows."""

    def __init__(self, manager: SQLiteManager, db_path: Path) -> None:
        self.manager = manager
        self.db_path = Path(db_path)
        self._conn = manager.connect(self.db_path)
        self._lock = manager.lock_for(self.db_path)

    def store(self, feed_id: str, states: Sequence[ArticleDeliveryState]) -> None:
        if not states:
            return
        created_at = utc_timestamp()
        rows = [
            (
                state.id,
                feed_id,
                state.medium_id,
                state.status.value,
                state.error_code.value if state.error_code is not None else None,
                state.internal_message,
                created_at,
            )
            for state in states
        ]
        with self._lock:
            self._conn.executemany(
                """
                INSERT INTO delivery_record(
                    id, feed_id, medium_id, status, error_code, internal_message, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                rows,
            )
            self._conn.commit()

    def count_deliveries_in_past_timeframe(
        self,
        *,
        feed_id: str,
        window_seconds: float,
        medium_id: str | None = None,
        now: datetime | None = None,
    ) -> int:
        """Count sent and rejected deliveries created within the trailing window."""

        if window_seconds < 0:
            raise ValueError("window_seconds must be non-negative")
        reference = now or datetime.now(timezone.utc)
        cutoff = utc_timestamp(reference - timedelta(seconds=window_seconds))
        statuses = [status.value for status in QUOTA_STATUSES]
        query = f"""
            SELECT COUNT(*) FROM delivery_record
            WHERE feed_id = ?
              AND status IN ({", ".join("?" for _ in statuses)})
              AND created_at >= ?
        """
        params: list[object] = [feed_id, *statuses, cutoff]
        if medium_id is not None:
            query += " AND medium_id = ?"
            params.append(medium_id)
        with self._lock:
            return int(self._conn.execute(query, params).fetchone()[0])

    def records(self, feed_id: str, limit: int | None = None) -> list[DeliveryRecord]:
        """Return a feed's records in insertion order, newest ``limit`` only if given."""

        query = """
            SELECT id, feed_id, medium_id, status, error_code, internal_message, created_at
            FROM delivery_record WHERE feed_id = ? ORDER BY seq DESC
        """
        params: list[object] = [feed_id]
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        with self._lock:
            rows = self._conn.execute(query, params).fetchall()
        return [
            DeliveryRecord(
                id=row["id"],
                feed_id=row["feed_id"],
                medium_id=row["medium_id"],
                status=ArticleDeliveryStatus(row["status"]),
                error_code=row["error_code"],
                internal_message=row["internal_message"],
                created_at=row["created_at"],
            )
            for row in reversed(rows)
        ]


__all__ = ["DeliveryLedger", "DeliveryRecord"]
