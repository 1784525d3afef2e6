"""Run independent per-feed ingestion cycles on a shared thread pool."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable, Generic, Iterable, TypeVar

T = TypeVar("T")
R = TypeVar("R")


@dataclass(slots=True)
class FeedOutcome(Generic[R]):
    feed_id: str
    result: R | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class IngestionPool:
    """Fan feed cycles out to worker threads, one task per feed."""

    def __init__(self, max_workers: int = 8) -> None:
        self.max_workers = max_workers
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="feedwatch")

    def run_all(
        self,
        items: Iterable[T],
        task: Callable[[T], R],
        key: Callable[[T], str],
    ) -> list[FeedOutcome[R]]:
        """Run ``task`` for every item; a failing feed never cancels the others."""

        futures = {self._executor.submit(task, item): key(item) for item in items}
        outcomes: dict[Future, FeedOutcome[R]] = {}
        for future in as_completed(futures):
            feed_id = futures[future]
            try:
                outcomes[future] = FeedOutcome(feed_id, result=future.result())
            except Exception as exc:  # noqa: BLE001 - reported per feed
                outcomes[future] = FeedOutcome(feed_id, error=exc)
        return [outcomes[future] for future in futures]

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)

    def __enter__(self) -> "IngestionPool":
        return self

    def __exit__(self, *_exc: object) -> None:
        self.shutdown()


__all__ = ["FeedOutcome", "IngestionPool"]
