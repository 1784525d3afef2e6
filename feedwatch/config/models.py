"""Pydantic models used across the feedwatch configuration flow."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator


class ComparisonStrategy(str, Enum):
    """How comparison fields decide that an already-seen article changed."""

    ANY_CHANGED = "any-changed"
    ALL_CHANGED = "all-changed"


class RateLimit(BaseModel):
    """At most ``limit`` sent/rejected deliveries per trailing ``window_seconds``."""

    limit: int = Field(ge=1)
    window_seconds: int = Field(ge=1)

    @classmethod
    def parse(cls, text: str) -> "RateLimit":
        """Parse ``"<limit>:<window_seconds>"`` as used on the command line."""

        limit, sep, window = text.partition(":")
        if not sep:
            raise ValueError(f"Rate limit must look like LIMIT:SECONDS, got {text!r}")
        return cls(limit=int(limit), window_seconds=int(window))


class FeedConfig(BaseModel):
    """Definition of a single subscribed feed."""

    feed_id: str
    url: str
    enabled: bool = True
    comparison_fields: list[str] = Field(default_factory=list)
    comparison_strategy: ComparisonStrategy = ComparisonStrategy.ANY_CHANGED
    keywords_filter: list[str] = Field(default_factory=list)
    rate_limits: list[RateLimit] = Field(default_factory=list)
    medium_ids: list[str] = Field(default_factory=list)

    @field_validator("feed_id", "url")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("value cannot be blank")
        return value

    @field_validator("comparison_fields", mode="before")
    @classmethod
    def _normalise_fields(cls, value: Any) -> list[str]:
        if value in (None, ""):
            return []
        if isinstance(value, str):
            value = [value]
        result: list[str] = []
        for name in value:
            if not isinstance(name, str) or not name.strip():
                raise ValueError("comparison field names cannot be blank")
            name = name.strip()
            # The id is always compared, so it is never a custom dimension.
            if name != "id" and name not in result:
                result.append(name)
        return result

    @field_validator("keywords_filter", mode="before")
    @classmethod
    def _coerce_keywords(cls, value: Any) -> list[str]:
        if value in (None, ""):
            return []
        if isinstance(value, str):
            return [value]
        return list(value)


class FetchServiceConfig(BaseModel):
    """Location and options of the external feed fetch service."""

    url: str | None = None
    timeout: float = Field(default=30.0, gt=0)
    execute_fresh: bool = False


class GlobalConfig(BaseModel):
    """Controls shared across all feeds."""

    database_path: Path = Field(default=Path("data/feedwatch.db"))
    fetch_service: FetchServiceConfig = Field(default_factory=FetchServiceConfig)
    thread_pool_workers: int = Field(default=8, ge=1)
    outbox_dir: Path = Field(default=Path("data/outbox"))
    default_medium_id: str = "default"

    @field_validator("database_path", "outbox_dir", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> Path:
        return Path(value)

    @model_validator(mode="after")
    def _validate_medium(self) -> "GlobalConfig":
        if not self.default_medium_id.strip():
            raise ValueError("default_medium_id cannot be blank")
        return self

    def resolved_database_path(self, base_dir: Path) -> Path:
        """Return the database path relative to the project root."""

        if not self.database_path.is_absolute():
            return (base_dir / self.database_path).resolve()
        return self.database_path

    def resolved_outbox_dir(self, base_dir: Path) -> Path:
        if not self.outbox_dir.is_absolute():
            return (base_dir / self.outbox_dir).resolve()
        return self.outbox_dir


__all__ = [
    "ComparisonStrategy",
    "FeedConfig",
    "FetchServiceConfig",
    "GlobalConfig",
    "RateLimit",
]
