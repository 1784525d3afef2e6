"""Engine components wiring parse → classify → fingerprint."""

from .dedup import ArticleClassifier, ArticleVerdict, ClassifiedArticle, DeduplicationEngine
from .fetcher import FeedFetcher
from .fingerprints import ComparisonRegistry, FingerprintStore
from .parser import WELL_KNOWN_FIELDS, Article, FeedParser, ParseResult
from .thread_pool import FeedOutcome, IngestionPool

__all__ = [
    "Article",
    "ArticleClassifier",
    "ArticleVerdict",
    "ClassifiedArticle",
    "ComparisonRegistry",
    "DeduplicationEngine",
    "FeedFetcher",
    "FeedOutcome",
    "FeedParser",
    "FingerprintStore",
    "IngestionPool",
    "ParseResult",
    "WELL_KNOWN_FIELDS",
]
