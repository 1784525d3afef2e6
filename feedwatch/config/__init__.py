"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository
from .models import (
    ComparisonStrategy,
    FeedConfig,
    FetchServiceConfig,
    GlobalConfig,
    RateLimit,
)

__all__ = [
    "ComparisonStrategy",
    "ConfigLocator",
    "ConfigRepository",
    "FeedConfig",
    "FetchServiceConfig",
    "GlobalConfig",
    "RateLimit",
]
