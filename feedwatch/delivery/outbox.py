"""Local JSON-lines delivery medium."""

from __future__ import annotations

import json
import re
from pathlib import Path
from threading import Lock

from ..engine.parser import Article
from ..infra.storage import utc_timestamp
from .medium import DeliveryDetails, DeliveryMedium
from .types import ArticleDeliveryErrorCode, ArticleDeliveryState


class OutboxMedium(DeliveryMedium):
    """Append delivered articles to ``<directory>/<feed>.jsonl``, one per line."""

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)
        self._lock = Lock()

    def path_for(self, feed_id: str) -> Path:
        slug = re.sub(r"[^0-9A-Za-z_-]+", "_", feed_id.strip()) or "feed"
        return self.directory / f"{slug}.jsonl"

    def deliver_article(self, article: Article, details: DeliveryDetails) -> ArticleDeliveryState:
        feed_id = str(details.feed_details.get("id") or "feed")
        record = {
            "delivery_id": details.delivery_id,
            "medium_id": details.medium_id,
            "feed": details.feed_details,
            "settings": details.delivery_settings,
            "article": article.as_dict(),
            "delivered_at": utc_timestamp(),
        }
        try:
            with self._lock:
                self.directory.mkdir(parents=True, exist_ok=True)
                with self.path_for(feed_id).open("a", encoding="utf-8") as stream:
                    json.dump(record, stream, ensure_ascii=False)
                    stream.write("\n")
        except OSError as exc:
            return ArticleDeliveryState.failed(
                article.id,
                details.medium_id,
                ArticleDeliveryErrorCode.NO_CHANNEL_OR_WEBHOOK,
                internal_message=str(exc),
            )
        return ArticleDeliveryState.sent(article.id, details.medium_id)


__all__ = ["OutboxMedium"]
