"""Trailing-window delivery counts for admission control."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable

from ..config import RateLimit
from .ledger import DeliveryLedger


class RateWindowCounter:
    """Read-only view over the ledger answering "how much quota is left"."""

    def __init__(self, ledger: DeliveryLedger) -> None:
        self.ledger = ledger

    def count(
        self,
        feed_id: str,
        window_seconds: float,
        medium_id: str | None = None,
        now: datetime | None = None,
    ) -> int:
        return self.ledger.count_deliveries_in_past_timeframe(
            feed_id=feed_id,
            window_seconds=window_seconds,
            medium_id=medium_id,
            now=now,
        )

    def remaining_capacity(
        self,
        feed_id: str,
        limits: Iterable[RateLimit],
        medium_id: str | None = None,
        now: datetime | None = None,
    ) -> int | None:
        """Smallest remaining allowance across ``limits``; ``None`` means unlimited."""

        remaining: int | None = None
        for limit in limits:
            used = self.count(feed_id, limit.window_seconds, medium_id=medium_id, now=now)
            left = max(limit.limit - used, 0)
            remaining = left if remaining is None else min(remaining, left)
        return remaining

    def is_throttled(
        self,
        feed_id: str,
        limits: Iterable[RateLimit],
        medium_id: str | None = None,
        now: datetime | None = None,
    ) -> bool:
        return self.remaining_capacity(feed_id, limits, medium_id=medium_id, now=now) == 0


__all__ = ["RateWindowCounter"]
