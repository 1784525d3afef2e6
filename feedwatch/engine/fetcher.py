"""Client for the external feed fetch service."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from ..config import FetchServiceConfig
from ..exceptions import FeedFetchError, FeedRequestPending


class FeedFetcher:
    """Ask the fetch service for a feed body, honouring its caching options.

    The service answers ``{"requestStatus": ..., "response": {"body": ...}}``.
    ``success`` yields the body, ``pending`` means the request was queued and
    the caller should retry on its next cycle, and any other status is a
    failure for this cycle.
    """

    def __init__(
        self,
        config: FetchServiceConfig,
        client: httpx.Client | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        if not config.url:
            raise ValueError("Fetch service URL is not configured")
        self.config = config
        self._client = client or httpx.Client(timeout=config.timeout)
        self._owns_client = client is None
        self.logger = logger or structlog.get_logger("feedwatch.fetcher")

    def fetch(self, url: str, execute_fresh: bool | None = None) -> str:
        fresh = self.config.execute_fresh if execute_fresh is None else execute_fresh
        try:
            response = self._client.post(
                self.config.url,
                json={"url": url, "executeFresh": fresh},
                timeout=self.config.timeout,
            )
            response.raise_for_status()
            payload: Any = response.json()
        except httpx.HTTPError as exc:
            self.logger.warning("feed_fetch_http_error", url=url, error=str(exc))
            raise FeedFetchError(url, f"fetch service request failed: {exc}") from exc
        except ValueError as exc:
            raise FeedFetchError(url, "fetch service returned invalid JSON") from exc

        status = payload.get("requestStatus") if isinstance(payload, dict) else None
        if status == "success":
            body = (payload.get("response") or {}).get("body")
            if not isinstance(body, str):
                raise FeedFetchError(url, "fetch service response has no body", status=status)
            self.logger.debug("feed_fetched", url=url, size=len(body))
            return body
        if status == "pending":
            raise FeedRequestPending(url, "feed request is pending", status=status)
        raise FeedFetchError(url, f"fetch service reported status {status!r}", status=status)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "FeedFetcher":
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()


__all__ = ["FeedFetcher"]
