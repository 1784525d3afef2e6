"""RSS/Atom parsing into normalised article records."""

from __future__ import annotations

import hashlib
import io
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

import feedparser

from ..exceptions import InvalidFeedDocument

# Names every parser output may carry; callers may still compare on any other
# string key they project into ``Article.fields``.
WELL_KNOWN_FIELDS = (
    "id",
    "title",
    "description",
    "link",
    "author",
    "published",
    "updated",
    "guid",
)

_FALLBACK_ID_FIELDS = ("link", "title", "description", "published")
_ID_SEPARATOR = "\x1f"


@dataclass(slots=True)
class Article:
    """A single feed item: a stable ``id`` plus string-valued fields."""

    id: str
    fields: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id:
            raise ValueError("Article id must be a non-empty string")
        for name, value in self.fields.items():
            if not isinstance(name, str) or not name:
                raise TypeError(f"Article field names must be non-empty strings: {name!r}")
            if not isinstance(value, str):
                raise TypeError(f"Article field {name!r} must be a string, got {type(value).__name__}")

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "Article":
        """Build an article from a flat mapping, dropping ``None`` values."""

        data = dict(payload)
        article_id = data.pop("id", None)
        fields = {name: value for name, value in data.items() if value is not None}
        return cls(id=article_id, fields=fields)

    def get(self, name: str) -> str | None:
        if name == "id":
            return self.id
        return self.fields.get(name)

    def has(self, name: str) -> bool:
        return name == "id" or name in self.fields

    def as_dict(self) -> dict[str, str]:
        return {"id": self.id, **self.fields}


@dataclass(slots=True)
class ParseResult:
    """Articles in document order plus feed-level metadata."""

    articles: list[Article]
    title: str | None = None
    link: str | None = None
    version: str = ""


class FeedParser:
    """Turn raw RSS 2.0 / Atom text into :class:`Article` records."""

    def parse(self, raw_text: str) -> ParseResult:
        if not isinstance(raw_text, str) or not raw_text.strip():
            raise InvalidFeedDocument("Feed text is empty")

        # A file-like object stops feedparser from treating the text as a path or URL.
        parsed = feedparser.parse(
            io.BytesIO(raw_text.encode("utf-8")),
            response_headers={"content-type": "application/xml; charset=utf-8"},
        )
        if parsed.get("bozo") and not self._is_benign(parsed.get("bozo_exception")):
            raise InvalidFeedDocument(
                f"Malformed feed document: {parsed.get('bozo_exception')}",
                cause=parsed.get("bozo_exception"),
            )
        version = parsed.get("version") or ""
        if not version:
            raise InvalidFeedDocument("Document is not a recognised RSS or Atom feed")
        feed_meta = parsed.get("feed") or {}
        if not feed_meta:
            raise InvalidFeedDocument("Feed document has no channel or feed-level metadata")

        articles = [self._build_article(entry) for entry in parsed.get("entries", [])]
        return ParseResult(
            articles=articles,
            title=feed_meta.get("title"),
            link=feed_meta.get("link"),
            version=version,
        )

    def filter_by_keywords(self, article: Article, keywords: Iterable[str]) -> bool:
        keywords = [keyword for keyword in keywords if keyword]
        if not keywords:
            return True
        haystack = " ".join(value for value in article.fields.values() if value).lower()
        return any(keyword.lower() in haystack for keyword in keywords)

    @staticmethod
    def _is_benign(exc: BaseException | None) -> bool:
        # Encoding and content-type notices do not make the document malformed.
        return isinstance(exc, (feedparser.CharacterEncodingOverride, feedparser.NonXMLContentType))

    def _build_article(self, entry: Mapping[str, Any]) -> Article:
        fields: dict[str, str] = {}
        for name, value in (
            ("title", entry.get("title")),
            ("description", entry.get("summary") or entry.get("description")),
            ("link", entry.get("link")),
            ("author", entry.get("author")),
            ("published", entry.get("published")),
            ("updated", entry.get("updated")),
            ("guid", entry.get("id")),
        ):
            text = self._clean(value)
            if text is not None:
                fields[name] = text
        return Article(id=self._derive_id(fields), fields=fields)

    @staticmethod
    def _derive_id(fields: Mapping[str, str]) -> str:
        explicit = fields.get("guid")
        if explicit:
            return explicit
        material = _ID_SEPARATOR.join(fields.get(name, "") for name in _FALLBACK_ID_FIELDS)
        return hashlib.sha1(material.encode("utf-8")).hexdigest()

    @staticmethod
    def _clean(value: Any) -> str | None:
        if value is None:
            return None
        text = str(value).strip()
        return text or None


__all__ = ["Article", "FeedParser", "ParseResult", "WELL_KNOWN_FIELDS"]
