"""Configuration loading helpers for feedwatch."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

import yaml
from pydantic import ValidationError

from .models import FeedConfig, GlobalConfig

CONFIG_EXTENSIONS = (".yaml", ".yml", ".json")
GLOBAL_CONFIG_FILENAME = "global_config.yaml"
FEED_CONFIG_SUFFIX = ".yaml"
HOME_ENV = "FEEDWATCH_HOME"
FETCH_SERVICE_URL_ENV = "FEED_REQUEST_SERVICE_URL"


def _slugify(name: str) -> str:
    return "".join(ch.lower() if ch.isalnum() else "-" for ch in name).strip("-")


def _read_file(path: Path) -> dict:
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(text) or {}
        else:
            data = json.loads(text)
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise ValueError(f"Invalid configuration syntax in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file must contain a mapping: {path}")
    return data


def _write_file(path: Path, payload: dict) -> None:
    with path.open("w", encoding="utf-8") as stream:
        if path.suffix in (".yaml", ".yml"):
            yaml.safe_dump(payload, stream, allow_unicode=True, sort_keys=False)
        else:
            json.dump(payload, stream, indent=2, ensure_ascii=False)


@dataclass(slots=True)
class ConfigLocator:
    """Resolve important paths from the project root."""

    project_root: Path | None = None
    data_dir: Path | None = None
    feeds_dir: Path | None = None
    logs_dir: Path | None = None

    def __post_init__(self) -> None:
        env_root = os.environ.get(HOME_ENV)
        if env_root:
            root = Path(env_root).expanduser().resolve()
        else:
            root = (self.project_root or Path.cwd()).resolve()
        self.project_root = root
        self.data_dir = (root / "data").resolve()
        self.feeds_dir = (self.data_dir / "feeds").resolve()
        self.logs_dir = (root / "logs").resolve()
        self.ensure_directories()

    def ensure_directories(self) -> None:
        for directory in (self.data_dir, self.feeds_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def global_config_path(self) -> Path:
        return self.data_dir / GLOBAL_CONFIG_FILENAME


class ConfigRepository:
    """Repository encapsulating config IO and schema validation."""

    def __init__(self, locator: ConfigLocator | None = None) -> None:
        self.locator = locator or ConfigLocator()
        self._global_cache: GlobalConfig | None = None

    # ------------------------------------------------------------------
    # Global configuration helpers
    # ------------------------------------------------------------------
    def load_global_config(self) -> GlobalConfig:
        if self._global_cache is not None:
            return self._global_cache
        path = self.locator.global_config_path()
        if path.exists():
            global_cfg = self._validate(GlobalConfig, _read_file(path), path)
        else:
            global_cfg = GlobalConfig()
            self.save_global_config(global_cfg)
        service_url = os.environ.get(FETCH_SERVICE_URL_ENV)
        if service_url:
            global_cfg = global_cfg.model_copy(
                update={"fetch_service": global_cfg.fetch_service.model_copy(update={"url": service_url})}
            )
        self._global_cache = global_cfg
        return global_cfg

    def save_global_config(self, config: GlobalConfig) -> None:
        path = self.locator.global_config_path()
        _write_file(path, config.model_dump(mode="json"))
        self._global_cache = config

    def database_path(self) -> Path:
        return self.load_global_config().resolved_database_path(self.locator.project_root)

    def outbox_dir(self) -> Path:
        return self.load_global_config().resolved_outbox_dir(self.locator.project_root)

    # ------------------------------------------------------------------
    # Feed configuration helpers
    # ------------------------------------------------------------------
    def feed_path(self, feed_id: str) -> Path:
        return self.locator.feeds_dir / f"{_slugify(feed_id)}{FEED_CONFIG_SUFFIX}"

    def list_feed_files(self) -> Iterable[Path]:
        for path in sorted(self.locator.feeds_dir.glob("*")):
            if path.is_file() and path.suffix in CONFIG_EXTENSIONS:
                yield path

    def list_feeds(self) -> list[FeedConfig]:
        return [self.load_feed(path) for path in self.list_feed_files()]

    def load_feed(self, identifier: str | Path) -> FeedConfig:
        path = identifier if isinstance(identifier, Path) else self.feed_path(identifier)
        if not path.exists():
            raise FileNotFoundError(f"Feed configuration not found: {identifier}")
        return self._validate(FeedConfig, _read_file(path), path)

    def save_feed(self, config: FeedConfig) -> Path:
        path = self.feed_path(config.feed_id)
        if path.exists():
            stored_id = _read_file(path).get("feed_id")
            if stored_id != config.feed_id:
                raise ValueError(
                    f"Feed id {config.feed_id!r} collides with existing feed {stored_id!r} at {path}"
                )
        _write_file(path, config.model_dump(mode="json"))
        return path

    def delete_feed(self, feed_id: str) -> bool:
        path = self.feed_path(feed_id)
        if path.exists():
            path.unlink()
            return True
        return False

    @staticmethod
    def _validate(model, payload: dict, path: Path):
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            raise ValueError(f"Invalid configuration in {path}: {exc}") from exc


__all__ = ["CONFIG_EXTENSIONS", "ConfigLocator", "ConfigRepository", "FETCH_SERVICE_URL_ENV", "HOME_ENV"]
