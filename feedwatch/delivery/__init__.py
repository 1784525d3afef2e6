"""Delivery outcome types, the medium contract, and the delivery ledger."""

from .ledger import DeliveryLedger, DeliveryRecord
from .medium import DeliveryDetails, DeliveryMedium
from .outbox import OutboxMedium
from .rate_limit import RateWindowCounter
from .types import (
    ArticleDeliveryErrorCode,
    ArticleDeliveryRejectedCode,
    ArticleDeliveryState,
    ArticleDeliveryStatus,
)

__all__ = [
    "ArticleDeliveryErrorCode",
    "ArticleDeliveryRejectedCode",
    "ArticleDeliveryState",
    "ArticleDeliveryStatus",
    "DeliveryDetails",
    "DeliveryLedger",
    "DeliveryMedium",
    "DeliveryRecord",
    "OutboxMedium",
    "RateWindowCounter",
]
