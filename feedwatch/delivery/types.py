"""Delivery outcome statuses and their error code taxonomies."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union


class ArticleDeliveryStatus(str, Enum):
    SENT = "sent"
    FAILED = "failed"
    REJECTED = "rejected"
    FILTERED_OUT = "filtered-out"


class ArticleDeliveryErrorCode(str, Enum):
    """Our side or transient: the delivery may succeed on retry."""

    INTERNAL = "internal-error"
    NO_CHANNEL_OR_WEBHOOK = "no-channel-or-webhook"
    THIRD_PARTY_INTERNAL = "third-party-internal"


class ArticleDeliveryRejectedCode(str, Enum):
    """The destination refused the request."""

    BAD_REQUEST = "bad-request"
    FORBIDDEN = "forbidden"
    MEDIUM_NOT_FOUND = "medium-not-found"


DeliveryCode = Union[ArticleDeliveryErrorCode, ArticleDeliveryRejectedCode]

# Statuses that consume the destination's delivery quota.
QUOTA_STATUSES = (ArticleDeliveryStatus.SENT, ArticleDeliveryStatus.REJECTED)


@dataclass(frozen=True, slots=True)
class ArticleDeliveryState:
    """Outcome reported by a delivery medium for one article."""

    id: str
    medium_id: str
    status: ArticleDeliveryStatus
    error_code: DeliveryCode | None = None
    internal_message: str | None = None

    def __post_init__(self) -> None:
        status = ArticleDeliveryStatus(self.status)
        object.__setattr__(self, "status", status)
        if status is ArticleDeliveryStatus.FAILED:
            self._require_code(ArticleDeliveryErrorCode)
        elif status is ArticleDeliveryStatus.REJECTED:
            self._require_code(ArticleDeliveryRejectedCode)
        elif self.error_code is not None or self.internal_message is not None:
            raise ValueError(f"{status.value} deliveries carry no error details")

    def _require_code(self, taxonomy: type[Enum]) -> None:
        try:
            code = taxonomy(self.error_code)
        except ValueError as exc:
            raise ValueError(
                f"{self.status.value} deliveries require a {taxonomy.__name__}, got {self.error_code!r}"
            ) from exc
        object.__setattr__(self, "error_code", code)

    @classmethod
    def sent(cls, article_id: str, medium_id: str) -> "ArticleDeliveryState":
        return cls(article_id, medium_id, ArticleDeliveryStatus.SENT)

    @classmethod
    def filtered_out(cls, article_id: str, medium_id: str) -> "ArticleDeliveryState":
        return cls(article_id, medium_id, ArticleDeliveryStatus.FILTERED_OUT)

    @classmethod
    def failed(
        cls,
        article_id: str,
        medium_id: str,
        error_code: ArticleDeliveryErrorCode = ArticleDeliveryErrorCode.INTERNAL,
        internal_message: str | None = None,
    ) -> "ArticleDeliveryState":
        return cls(article_id, medium_id, ArticleDeliveryStatus.FAILED, error_code, internal_message)

    @classmethod
    def rejected(
        cls,
        article_id: str,
        medium_id: str,
        error_code: ArticleDeliveryRejectedCode = ArticleDeliveryRejectedCode.BAD_REQUEST,
        internal_message: str | None = None,
    ) -> "ArticleDeliveryState":
        return cls(article_id, medium_id, ArticleDeliveryStatus.REJECTED, error_code, internal_message)


__all__ = [
    "ArticleDeliveryErrorCode",
    "ArticleDeliveryRejectedCode",
    "ArticleDeliveryState",
    "ArticleDeliveryStatus",
    "DeliveryCode",
    "QUOTA_STATUSES",
]
