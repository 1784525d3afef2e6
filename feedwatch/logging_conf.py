"""JSON logging for feedwatch: one main log, one error log, one file per feed."""

from __future__ import annotations

import logging
import logging.config
import os
from pathlib import Path
from threading import Lock
from typing import Iterable

import structlog
from pythonjsonlogger import jsonlogger

from .config.loader import HOME_ENV

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
ROOT_LOGGER = "feedwatch"

_state_lock = Lock()
_configured = False
_feed_handlers: dict[str, logging.Handler] = {}


def _log_dir() -> Path:
    home = os.environ.get(HOME_ENV)
    return (Path(home).expanduser() if home else Path.cwd()) / "logs"


def main_log_path() -> Path:
    return _log_dir() / "feedwatch.log"


def feed_log_path(feed_id: str) -> Path:
    safe = "".join(ch if ch.isalnum() or ch in "-_" else "-" for ch in feed_id)
    return _log_dir() / "feeds" / f"{safe}.log"


def _dict_config(verbose: bool) -> dict:
    level = "DEBUG" if verbose else "INFO"

    def file_handler(path: Path, handler_level: str) -> dict:
        return {
            "class": "logging.FileHandler",
            "level": handler_level,
            "filename": str(path),
            "formatter": "json",
            "encoding": "utf-8",
        }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"json": {"()": "pythonjsonlogger.jsonlogger.JsonFormatter", "fmt": LOG_FORMAT}},
        "handlers": {
            "console": {"class": "logging.StreamHandler", "level": level if verbose else "WARNING", "formatter": "json"},
            "main_file": file_handler(main_log_path(), level),
            "error_file": file_handler(_log_dir() / "error.log", "ERROR"),
        },
        "loggers": {
            ROOT_LOGGER: {"handlers": ["console", "main_file", "error_file"], "level": level, "propagate": False},
        },
    }


def configure_logging(verbose: bool = False) -> structlog.BoundLogger:
    """Route structlog events through stdlib JSON handlers; safe to call repeatedly."""

    global _configured
    with _state_lock:
        if not _configured:
            (_log_dir() / "feeds").mkdir(parents=True, exist_ok=True)
            logging.config.dictConfig(_dict_config(verbose))
            structlog.configure(
                processors=[
                    structlog.contextvars.merge_contextvars,
                    structlog.processors.TimeStamper(fmt="iso"),
                    structlog.stdlib.add_log_level,
                    structlog.processors.format_exc_info,
                    structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
                ],
                logger_factory=structlog.stdlib.LoggerFactory(),
                cache_logger_on_first_use=True,
            )
            _configured = True
    return structlog.get_logger(ROOT_LOGGER)


def feed_logger(feed_id: str, verbose: bool = False) -> structlog.BoundLogger:
    """Logger bound to ``feed=<id>``; events also land in the feed's own file."""

    configure_logging(verbose)
    name = f"{ROOT_LOGGER}.feed.{feed_log_path(feed_id).stem}"
    with _state_lock:
        if name not in _feed_handlers:
            path = feed_log_path(feed_id)
            path.parent.mkdir(parents=True, exist_ok=True)
            handler = logging.FileHandler(path, encoding="utf-8")
            handler.setFormatter(jsonlogger.JsonFormatter(LOG_FORMAT))
            logging.getLogger(name).addHandler(handler)
            _feed_handlers[name] = handler
    return structlog.get_logger(name).bind(feed=feed_id)


def tail_log(path: Path, line_count: int = 100) -> list[str]:
    if not path.exists():
        return []
    with path.open("r", encoding="utf-8", errors="ignore") as stream:
        return stream.readlines()[-line_count:]


def available_feed_logs() -> Iterable[Path]:
    feeds_dir = _log_dir() / "feeds"
    return sorted(feeds_dir.glob("*.log")) if feeds_dir.exists() else []


__all__ = [
    "available_feed_logs",
    "configure_logging",
    "feed_log_path",
    "feed_logger",
    "main_log_path",
    "tail_log",
]
