from __future__ import annotations

from feedwatch.config import RateLimit
from feedwatch.delivery import ArticleDeliveryState, DeliveryLedger, RateWindowCounter


def test_remaining_capacity_uses_tightest_limit(ledger: DeliveryLedger) -> None:
    ledger.store(
        "feed",
        [
            ArticleDeliveryState.sent("a1", "m1"),
            ArticleDeliveryState.rejected("a2", "m1"),
            ArticleDeliveryState.failed("a3", "m1"),
        ],
    )
    counter = RateWindowCounter(ledger)

    limits = [RateLimit(limit=10, window_seconds=3600), RateLimit(limit=3, window_seconds=60)]
    assert counter.count("feed", 60) == 2
    assert counter.remaining_capacity("feed", limits) == 1
    assert not counter.is_throttled("feed", limits)
    assert counter.is_throttled("feed", [RateLimit(limit=2, window_seconds=60)])


def test_no_limits_means_unlimited(ledger: DeliveryLedger) -> None:
    counter = RateWindowCounter(ledger)
    assert counter.remaining_capacity("feed", []) is None
    assert not counter.is_throttled("feed", [])


def test_capacity_never_negative(ledger: DeliveryLedger) -> None:
    ledger.store("feed", [ArticleDeliveryState.sent(f"a{index}", "m1") for index in range(4)])
    counter = RateWindowCounter(ledger)
    assert counter.remaining_capacity("feed", [RateLimit(limit=1, window_seconds=60)]) == 0
