"""Infra layer utilities (SQLite storage)."""

from .storage import SQLiteManager, utc_timestamp

__all__ = ["SQLiteManager", "utc_timestamp"]
