"""Delivery medium Service Provider Interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from ..engine.parser import Article
from .types import ArticleDeliveryErrorCode, ArticleDeliveryState


@dataclass(slots=True)
class DeliveryDetails:
    delivery_id: str
    medium_id: str
    feed_details: dict[str, Any] = field(default_factory=dict)
    delivery_settings: dict[str, Any] = field(default_factory=dict)


class DeliveryMedium(ABC):
    """Uniform contract for channels that accept article deliveries."""

    @abstractmethod
    def deliver_article(self, article: Article, details: DeliveryDetails) -> ArticleDeliveryState:
        """Deliver one article and report the outcome as data."""

    def deliver_safely(self, article: Article, details: DeliveryDetails) -> ArticleDeliveryState:
        """Deliver, recording an unexpected exception as an internal failure."""

        try:
            return self.deliver_article(article, details)
        except Exception as exc:  # noqa: BLE001 - outcome is persisted, not raised
            return ArticleDeliveryState.failed(
                article.id,
                details.medium_id,
                ArticleDeliveryErrorCode.INTERNAL,
                internal_message=f"{type(exc).__name__}: {exc}",
            )


__all__ = ["DeliveryDetails", "DeliveryMedium"]
