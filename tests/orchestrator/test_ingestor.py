from __future__ import annotations

from pathlib import Path

import pytest

from feedwatch.config import RateLimit
from feedwatch.delivery import (
    ArticleDeliveryRejectedCode,
    ArticleDeliveryState,
    ArticleDeliveryStatus,
    DeliveryDetails,
    DeliveryMedium,
)
from feedwatch.engine import Article, IngestionPool
from feedwatch.exceptions import FeedRequestPending, InvalidFeedDocument
from feedwatch.infra import SQLiteManager
from feedwatch.orchestrator import FeedIngestor

RSS_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"><channel><title>Wire</title><link>https://example.com/</link>
<description>Wire</description>
{items}
</channel></rss>
"""


def _rss(*items: tuple[str, str]) -> str:
    body = "\n".join(
        f"<item><guid isPermaLink=\"false\">{guid}</guid><title>{title}</title>"
        f"<link>https://example.com/{guid}</link></item>"
        for guid, title in items
    )
    return RSS_TEMPLATE.format(items=body)


class RecordingMedium(DeliveryMedium):
    def __init__(self, reject: set[str] | None = None) -> None:
        self.delivered: list[tuple[str, DeliveryDetails]] = []
        self.reject = reject or set()

    def deliver_article(self, article: Article, details: DeliveryDetails) -> ArticleDeliveryState:
        self.delivered.append((article.id, details))
        if article.id in self.reject:
            return ArticleDeliveryState.rejected(article.id, details.medium_id, ArticleDeliveryRejectedCode.FORBIDDEN)
        return ArticleDeliveryState.sent(article.id, details.medium_id)


class BrokenMedium(DeliveryMedium):
    def deliver_article(self, article: Article, details: DeliveryDetails) -> ArticleDeliveryState:
        raise ConnectionError("webhook unreachable")


class StubFetcher:
    def __init__(self, body: str | Exception) -> None:
        self.body = body
        self.calls: list[str] = []

    def fetch(self, url: str, execute_fresh: bool | None = None) -> str:
        self.calls.append(url)
        if isinstance(self.body, Exception):
            raise self.body
        return self.body


@pytest.fixture
def medium() -> RecordingMedium:
    return RecordingMedium()


@pytest.fixture
def ingestor(sqlite_manager: SQLiteManager, db_path: Path, medium: RecordingMedium) -> FeedIngestor:
    return FeedIngestor.from_storage(sqlite_manager, db_path, mediums={"m1": medium})


def test_first_cycle_records_baseline_without_delivering(
    ingestor: FeedIngestor, medium: RecordingMedium, sample_feed_config
) -> None:
    feed = sample_feed_config()
    summary = ingestor.run_feed(feed, _rss(("a1", "One"), ("a2", "Two")))

    assert summary.baseline
    assert summary.parsed == 2
    assert summary.sent == 0
    assert medium.delivered == []
    assert ingestor.fingerprints.count(feed.feed_id, "id") == 2
    assert ingestor.ledger.records(feed.feed_id) == []


def test_new_articles_are_delivered_and_recorded(
    ingestor: FeedIngestor, medium: RecordingMedium, sample_feed_config
) -> None:
    feed = sample_feed_config()
    ingestor.run_feed(feed, _rss(("a1", "One")))
    summary = ingestor.run_feed(feed, _rss(("a2", "Two"), ("a1", "One"), ("a3", "Three")))

    assert not summary.baseline
    assert (summary.new, summary.unchanged, summary.sent) == (2, 1, 2)
    assert [article_id for article_id, _ in medium.delivered] == ["a2", "a3"]
    _, details = medium.delivered[0]
    assert details.medium_id == "m1"
    assert details.feed_details == {"id": feed.feed_id, "url": feed.url}
    assert details.delivery_settings["verdict"] == "new"
    assert [record.id for record in ingestor.ledger.records(feed.feed_id)] == ["a2", "a3"]


def test_changed_articles_are_delivered(ingestor: FeedIngestor, medium: RecordingMedium, sample_feed_config) -> None:
    feed = sample_feed_config(comparison_fields=["title"])
    ingestor.run_feed(feed, _rss(("a1", "One")))
    summary = ingestor.run_feed(feed, _rss(("a1", "One, updated")))

    assert summary.changed == 1
    assert medium.delivered[0][1].delivery_settings == {"verdict": "changed", "changed_fields": ["title"]}

    again = ingestor.run_feed(feed, _rss(("a1", "One, updated")))
    assert again.unchanged == 1
    assert len(medium.delivered) == 1


def test_keyword_filter_records_filtered_out(
    ingestor: FeedIngestor, medium: RecordingMedium, sample_feed_config
) -> None:
    feed = sample_feed_config(keywords_filter=["rover"])
    ingestor.run_feed(feed, _rss(("a0", "Seed")))
    summary = ingestor.run_feed(feed, _rss(("a1", "Rover lands"), ("a2", "Budget talks")))

    assert (summary.sent, summary.filtered_out) == (1, 1)
    statuses = {record.id: record.status for record in ingestor.ledger.records(feed.feed_id)}
    assert statuses == {"a1": ArticleDeliveryStatus.SENT, "a2": ArticleDeliveryStatus.FILTERED_OUT}


def test_rate_limit_throttles_excess_articles(
    ingestor: FeedIngestor, medium: RecordingMedium, sample_feed_config
) -> None:
    feed = sample_feed_config(rate_limits=[RateLimit(limit=2, window_seconds=3600)])
    ingestor.run_feed(feed, _rss(("a0", "Seed")))
    summary = ingestor.run_feed(feed, _rss(("a1", "One"), ("a2", "Two"), ("a3", "Three")))

    assert (summary.sent, summary.throttled) == (2, 1)
    assert [article_id for article_id, _ in medium.delivered] == ["a1", "a2"]

    later = ingestor.run_feed(feed, _rss(("a4", "Four")))
    assert (later.sent, later.throttled) == (0, 1)


def test_rejections_consume_quota(sqlite_manager: SQLiteManager, db_path: Path, sample_feed_config) -> None:
    medium = RecordingMedium(reject={"a1"})
    ingestor = FeedIngestor.from_storage(sqlite_manager, db_path, mediums={"m1": medium})
    feed = sample_feed_config(rate_limits=[RateLimit(limit=1, window_seconds=3600)])
    ingestor.run_feed(feed, _rss(("a0", "Seed")))
    summary = ingestor.run_feed(feed, _rss(("a1", "One"), ("a2", "Two")))

    assert (summary.rejected, summary.sent, summary.throttled) == (1, 0, 1)


def test_medium_exception_becomes_failed_record(
    sqlite_manager: SQLiteManager, db_path: Path, sample_feed_config
) -> None:
    ingestor = FeedIngestor.from_storage(sqlite_manager, db_path, mediums={"broken": BrokenMedium()})
    feed = sample_feed_config()
    ingestor.run_feed(feed, _rss(("a0", "Seed")))
    summary = ingestor.run_feed(feed, _rss(("a1", "One")))

    assert summary.failed == 1
    [record] = ingestor.ledger.records(feed.feed_id)
    assert record.status is ArticleDeliveryStatus.FAILED
    assert record.error_code == "internal-error"
    assert record.internal_message == "ConnectionError: webhook unreachable"


def test_feed_medium_ids_select_mediums(sqlite_manager: SQLiteManager, db_path: Path, sample_feed_config) -> None:
    first, second = RecordingMedium(), RecordingMedium()
    ingestor = FeedIngestor.from_storage(sqlite_manager, db_path, mediums={"m1": first, "m2": second})
    feed = sample_feed_config(medium_ids=["m2", "unknown"])
    ingestor.run_feed(feed, _rss(("a0", "Seed")))
    ingestor.run_feed(feed, _rss(("a1", "One")))

    assert first.delivered == []
    assert [article_id for article_id, _ in second.delivered] == ["a1"]


def test_run_feed_uses_fetcher(sqlite_manager: SQLiteManager, db_path: Path, sample_feed_config) -> None:
    fetcher = StubFetcher(_rss(("a1", "One")))
    ingestor = FeedIngestor.from_storage(sqlite_manager, db_path, fetcher=fetcher)
    feed = sample_feed_config()
    summary = ingestor.run_feed(feed)
    assert fetcher.calls == [feed.url]
    assert summary.parsed == 1


def test_run_feed_without_text_or_fetcher(ingestor: FeedIngestor, sample_feed_config) -> None:
    with pytest.raises(ValueError):
        ingestor.run_feed(sample_feed_config())


def test_invalid_feed_stores_nothing(ingestor: FeedIngestor, sample_feed_config) -> None:
    feed = sample_feed_config()
    with pytest.raises(InvalidFeedDocument):
        ingestor.run_feed(feed, "<rss><channel>")
    assert not ingestor.fingerprints.has_any_observation(feed.feed_id)


def test_run_all_isolates_failures(sqlite_manager: SQLiteManager, db_path: Path, sample_feed_config) -> None:
    fetcher = StubFetcher(FeedRequestPending("https://pending.example.com", "feed request is pending"))
    ingestor = FeedIngestor.from_storage(sqlite_manager, db_path, fetcher=fetcher)
    feeds = [
        sample_feed_config(feed_id="pending", url="https://pending.example.com"),
        sample_feed_config(feed_id="disabled", enabled=False),
    ]
    with IngestionPool(max_workers=2) as pool:
        outcomes = ingestor.run_all(feeds, pool)

    assert [outcome.feed_id for outcome in outcomes] == ["pending"]
    assert isinstance(outcomes[0].error, FeedRequestPending)
