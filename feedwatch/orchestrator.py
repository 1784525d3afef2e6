"""Ingestion cycle orchestrator wiring fetch, parse, dedup, delivery and the ledger."""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Callable, Iterable, Mapping, Sequence

import structlog

from .config import FeedConfig
from .delivery import (
    ArticleDeliveryState,
    ArticleDeliveryStatus,
    DeliveryDetails,
    DeliveryLedger,
    DeliveryMedium,
    RateWindowCounter,
)
from .delivery.types import QUOTA_STATUSES
from .engine import (
    Article,
    ArticleClassifier,
    ArticleVerdict,
    ClassifiedArticle,
    ComparisonRegistry,
    DeduplicationEngine,
    FeedFetcher,
    FeedOutcome,
    FeedParser,
    FingerprintStore,
    IngestionPool,
)
from .infra import SQLiteManager


@dataclass(slots=True)
class IngestSummary:
    """Counters describing one ingestion cycle of one feed."""

    feed_id: str
    parsed: int = 0
    baseline: bool = False
    new: int = 0
    changed: int = 0
    unchanged: int = 0
    sent: int = 0
    failed: int = 0
    rejected: int = 0
    filtered_out: int = 0
    throttled: int = 0

    def record(self, state: ArticleDeliveryState) -> None:
        if state.status is ArticleDeliveryStatus.SENT:
            self.sent += 1
        elif state.status is ArticleDeliveryStatus.FAILED:
            self.failed += 1
        elif state.status is ArticleDeliveryStatus.REJECTED:
            self.rejected += 1
        else:
            self.filtered_out += 1

    def as_dict(self) -> dict[str, object]:
        return asdict(self)


class FeedIngestor:
    """Run ingestion cycles: decide what is new, deliver it, and record outcomes.

    The first cycle of a feed (no fingerprints stored yet) only records a
    baseline and delivers nothing. Later cycles deliver articles whose id is
    unseen or whose comparison fields changed.
    """

    def __init__(
        self,
        fingerprints: FingerprintStore,
        registry: ComparisonRegistry,
        ledger: DeliveryLedger,
        parser: FeedParser | None = None,
        fetcher: FeedFetcher | None = None,
        mediums: Mapping[str, DeliveryMedium] | None = None,
        logger: structlog.BoundLogger | None = None,
        logger_factory: Callable[[str], structlog.BoundLogger] | None = None,
    ) -> None:
        self.fingerprints = fingerprints
        self.registry = registry
        self.ledger = ledger
        self.parser = parser or FeedParser()
        self.fetcher = fetcher
        self.mediums: dict[str, DeliveryMedium] = dict(mediums or {})
        self.dedup = DeduplicationEngine(fingerprints, registry)
        self.rate_counter = RateWindowCounter(ledger)
        self.logger = logger or structlog.get_logger("feedwatch.ingest")
        self._logger_factory = logger_factory

    @classmethod
    def from_storage(
        cls,
        manager: SQLiteManager,
        db_path: Path,
        fetcher: FeedFetcher | None = None,
        mediums: Mapping[str, DeliveryMedium] | None = None,
        logger: structlog.BoundLogger | None = None,
        logger_factory: Callable[[str], structlog.BoundLogger] | None = None,
    ) -> "FeedIngestor":
        return cls(
            fingerprints=FingerprintStore(manager, db_path),
            registry=ComparisonRegistry(manager, db_path),
            ledger=DeliveryLedger(manager, db_path),
            fetcher=fetcher,
            mediums=mediums,
            logger=logger,
            logger_factory=logger_factory,
        )

    # ------------------------------------------------------------------
    def register_medium(self, medium_id: str, medium: DeliveryMedium) -> None:
        self.mediums[medium_id] = medium

    def run_feed(self, feed: FeedConfig, feed_text: str | None = None) -> IngestSummary:
        log = self._feed_log(feed.feed_id)
        if feed_text is None:
            if self.fetcher is None:
                raise ValueError(f"No feed text given and no fetch service configured for {feed.feed_id}")
            feed_text = self.fetcher.fetch(feed.url)

        result = self.parser.parse(feed_text)
        summary = IngestSummary(feed_id=feed.feed_id, parsed=len(result.articles))
        log.info("feed_parsed", articles=summary.parsed, version=result.version)

        classified = self.classify(feed, result.articles)
        if classified is None:
            summary.baseline = True
            self.dedup.store_articles(feed.feed_id, result.articles, feed.comparison_fields)
            log.info("feed_baseline_stored", articles=summary.parsed)
            return summary

        for item in classified:
            if item.verdict is ArticleVerdict.NEW:
                summary.new += 1
            elif item.verdict is ArticleVerdict.CHANGED:
                summary.changed += 1
            else:
                summary.unchanged += 1
        self.dedup.store_articles(feed.feed_id, result.articles, feed.comparison_fields)
        log.info("articles_stored", new=summary.new, changed=summary.changed, unchanged=summary.unchanged)

        to_deliver = [item for item in classified if item.should_deliver]
        self.deliver(feed, to_deliver, summary)
        return summary

    def classify(self, feed: FeedConfig, articles: Sequence[Article]) -> list[ClassifiedArticle] | None:
        """Classify a batch, or return ``None`` when this is the feed's first cycle."""

        if not self.dedup.has_prior_articles(feed.feed_id):
            return None
        classifier = ArticleClassifier(self.fingerprints, self.registry, feed.comparison_strategy)
        return classifier.classify(feed.feed_id, articles, feed.comparison_fields)

    def deliver(
        self,
        feed: FeedConfig,
        items: Iterable[ClassifiedArticle],
        summary: IngestSummary,
    ) -> list[ArticleDeliveryState]:
        items = list(items)
        mediums = self._mediums_for(feed)
        if not items or not mediums:
            return []
        log = self._feed_log(feed.feed_id)
        capacity = self.rate_counter.remaining_capacity(feed.feed_id, feed.rate_limits)
        feed_details = {"id": feed.feed_id, "url": feed.url}

        states: list[ArticleDeliveryState] = []
        for medium_id, medium in mediums:
            batch: list[ArticleDeliveryState] = []
            for item in items:
                article = item.article
                if not self.parser.filter_by_keywords(article, feed.keywords_filter):
                    batch.append(ArticleDeliveryState.filtered_out(article.id, medium_id))
                    continue
                if capacity is not None and capacity <= 0:
                    summary.throttled += 1
                    log.warning("delivery_throttled", article=article.id, medium=medium_id)
                    continue
                details = DeliveryDetails(
                    delivery_id=uuid.uuid4().hex,
                    medium_id=medium_id,
                    feed_details=feed_details,
                    delivery_settings={"verdict": item.verdict.value, "changed_fields": list(item.changed_fields)},
                )
                state = medium.deliver_safely(article, details)
                if state.status in QUOTA_STATUSES and capacity is not None:
                    capacity -= 1
                batch.append(state)
            self.ledger.store(feed.feed_id, batch)
            for state in batch:
                summary.record(state)
            states.extend(batch)
        log.info(
            "deliveries_recorded",
            sent=summary.sent,
            failed=summary.failed,
            rejected=summary.rejected,
            filtered_out=summary.filtered_out,
            throttled=summary.throttled,
        )
        return states

    def run_all(
        self,
        feeds: Iterable[FeedConfig],
        pool: IngestionPool,
    ) -> list[FeedOutcome[IngestSummary]]:
        enabled = [feed for feed in feeds if feed.enabled]
        outcomes = pool.run_all(enabled, self.run_feed, key=lambda feed: feed.feed_id)
        for outcome in outcomes:
            if not outcome.ok:
                self.logger.error("feed_cycle_failed", feed=outcome.feed_id, error=str(outcome.error))
        return outcomes

    def _feed_log(self, feed_id: str) -> structlog.BoundLogger:
        if self._logger_factory is not None:
            return self._logger_factory(feed_id)
        return self.logger.bind(feed=feed_id)

    def _mediums_for(self, feed: FeedConfig) -> list[tuple[str, DeliveryMedium]]:
        if not feed.medium_ids:
            return list(self.mediums.items())
        return [(medium_id, self.mediums[medium_id]) for medium_id in feed.medium_ids if medium_id in self.mediums]


__all__ = ["FeedIngestor", "IngestSummary"]
