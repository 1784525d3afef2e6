"""Shared fixtures for storage, configuration and feed documents."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Iterable

import pytest

from feedwatch.config import ConfigLocator, ConfigRepository, FeedConfig
from feedwatch.delivery import DeliveryLedger
from feedwatch.engine import ComparisonRegistry, FingerprintStore
from feedwatch.infra import SQLiteManager

DATA_DIR = Path(__file__).parent / "data"


@pytest.fixture
def sqlite_manager() -> Iterable[SQLiteManager]:
    manager = SQLiteManager()
    yield manager
    manager.close_all()


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "data" / "feedwatch.db"


@pytest.fixture
def fingerprints(sqlite_manager: SQLiteManager, db_path: Path) -> FingerprintStore:
    return FingerprintStore(sqlite_manager, db_path)


@pytest.fixture
def registry(sqlite_manager: SQLiteManager, db_path: Path) -> ComparisonRegistry:
    return ComparisonRegistry(sqlite_manager, db_path)


@pytest.fixture
def ledger(sqlite_manager: SQLiteManager, db_path: Path) -> DeliveryLedger:
    return DeliveryLedger(sqlite_manager, db_path)


@pytest.fixture
def feed_text() -> Callable[[str], str]:
    def _load(name: str) -> str:
        return (DATA_DIR / name).read_text(encoding="utf-8")

    return _load


@pytest.fixture
def sample_feed_config() -> Callable[..., FeedConfig]:
    def _builder(**overrides: Any) -> FeedConfig:
        base: dict[str, Any] = {
            "feed_id": "example-wire",
            "url": "https://example.com/rss.xml",
        }
        base.update(overrides)
        return FeedConfig(**base)

    return _builder


@pytest.fixture
def temp_config_repository(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterable[ConfigRepository]:
    monkeypatch.setenv("FEEDWATCH_HOME", str(tmp_path))
    monkeypatch.delenv("FEED_REQUEST_SERVICE_URL", raising=False)
    locator = ConfigLocator(project_root=tmp_path)
    repository = ConfigRepository(locator)
    yield repository
