"""Deduplication layer built on the SQLite fingerprint store.

Storage and classification live in separate classes. ``DeduplicationEngine``
only records fingerprints. ``ArticleClassifier`` reads them before a batch is
stored and labels each article new, changed or unchanged according to a
:class:`~feedwatch.config.ComparisonStrategy`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Sequence

from ..config import ComparisonStrategy
from .fingerprints import ComparisonRegistry, FingerprintStore
from .parser import Article

ID_FIELD = "id"


def normalise_comparison_fields(names: Iterable[str] | None) -> list[str]:
    """Strip and de-duplicate comparison field names, preserving order."""

    if not names:
        return []
    result: list[str] = []
    for name in names:
        if not isinstance(name, str) or not name.strip():
            raise ValueError(f"Comparison field names must be non-empty strings: {name!r}")
        name = name.strip()
        if name == ID_FIELD or name in result:
            continue
        result.append(name)
    return result


class ArticleVerdict(str, Enum):
    NEW = "new"
    CHANGED = "changed"
    UNCHANGED = "unchanged"


@dataclass(slots=True)
class ClassifiedArticle:
    article: Article
    verdict: ArticleVerdict
    changed_fields: tuple[str, ...] = ()

    @property
    def should_deliver(self) -> bool:
        return self.verdict is not ArticleVerdict.UNCHANGED


class DeduplicationEngine:
    """Persist identity and comparison-field fingerprints for article batches."""

    def __init__(self, fingerprints: FingerprintStore, registry: ComparisonRegistry) -> None:
        self.fingerprints = fingerprints
        self.registry = registry

    def has_prior_articles(self, feed_id: str) -> bool:
        return self.fingerprints.has_any_observation(feed_id)

    def store_articles(
        self,
        feed_id: str,
        articles: Sequence[Article],
        comparison_fields: Iterable[str] | None = None,
    ) -> None:
        for article in articles:
            self.fingerprints.observe(feed_id, ID_FIELD, article.id)

        requested = normalise_comparison_fields(comparison_fields)
        if not requested:
            return
        for name in requested:
            self.registry.register_if_absent(feed_id, name)
        registered = self.registry.list_active_fields(feed_id)
        active = [name for name in requested if name in registered]

        for article in articles:
            for name in active:
                value = article.get(name)
                if value is None:
                    continue
                self.fingerprints.observe(feed_id, name, value)


class ArticleClassifier:
    """Label a batch against stored fingerprints before it is persisted."""

    def __init__(
        self,
        fingerprints: FingerprintStore,
        registry: ComparisonRegistry,
        strategy: ComparisonStrategy = ComparisonStrategy.ANY_CHANGED,
    ) -> None:
        self.fingerprints = fingerprints
        self.registry = registry
        self.strategy = strategy

    def classify(
        self,
        feed_id: str,
        articles: Sequence[Article],
        comparison_fields: Iterable[str] | None = None,
    ) -> list[ClassifiedArticle]:
        # Only fields registered before this batch have a history to compare with.
        active = self.registry.list_active_fields(feed_id)
        dimensions = [name for name in normalise_comparison_fields(comparison_fields) if name in active]

        seen_ids = self.fingerprints.observed_values(
            feed_id, ID_FIELD, (article.id for article in articles)
        )
        seen_values = {
            name: self.fingerprints.observed_values(
                feed_id,
                name,
                (article.get(name) for article in articles if article.get(name) is not None),
            )
            for name in dimensions
        }

        results: list[ClassifiedArticle] = []
        batch_ids: set[str] = set()
        for article in articles:
            if article.id in batch_ids:
                results.append(ClassifiedArticle(article, ArticleVerdict.UNCHANGED))
                continue
            batch_ids.add(article.id)
            if article.id not in seen_ids:
                results.append(ClassifiedArticle(article, ArticleVerdict.NEW))
                continue
            present = [name for name in dimensions if article.get(name) is not None]
            changed = tuple(name for name in present if article.get(name) not in seen_values[name])
            if self._is_changed(present, changed):
                results.append(ClassifiedArticle(article, ArticleVerdict.CHANGED, changed))
            else:
                results.append(ClassifiedArticle(article, ArticleVerdict.UNCHANGED))
        return results

    def _is_changed(self, present: Sequence[str], changed: Sequence[str]) -> bool:
        if not present or not changed:
            return False
        if self.strategy is ComparisonStrategy.ALL_CHANGED:
            return len(changed) == len(present)
        return True


__all__ = [
    "ArticleClassifier",
    "ArticleVerdict",
    "ClassifiedArticle",
    "DeduplicationEngine",
    "ID_FIELD",
    "normalise_comparison_fields",
]
