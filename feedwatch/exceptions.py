"""Typed failures surfaced by feedwatch to its immediate caller."""

from __future__ import annotations


class FeedwatchError(Exception):
    """Base class for errors raised by feedwatch."""


class InvalidFeedDocument(FeedwatchError):
    """Raised when feed text is not a well-formed RSS/Atom document."""

    def __init__(self, message: str, *, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class FeedFetchError(FeedwatchError):
    """Raised when the feed fetch service cannot supply a feed body."""

    def __init__(self, url: str, message: str, *, status: str | None = None) -> None:
        super().__init__(f"{url}: {message}")
        self.url = url
        self.status = status


class FeedRequestPending(FeedFetchError):
    """The fetch service accepted the request but has no cached body yet."""


__all__ = ["FeedFetchError", "FeedRequestPending", "FeedwatchError", "InvalidFeedDocument"]
