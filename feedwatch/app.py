"""Typer CLI entrypoint for feedwatch."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Optional, Sequence

import typer
from pydantic import ValidationError
from rich import box
from rich.console import Console
from rich.table import Table
from typer import BadParameter

from .config import ComparisonStrategy, ConfigRepository, FeedConfig, RateLimit
from .delivery import OutboxMedium
from .engine import FeedFetcher, FeedParser, IngestionPool
from .exceptions import FeedwatchError
from .infra import SQLiteManager
from .logging_conf import (
    available_feed_logs,
    configure_logging,
    feed_log_path,
    feed_logger,
    main_log_path,
    tail_log,
)
from .orchestrator import FeedIngestor, IngestSummary

app = typer.Typer(
    help="feedwatch command line: track new and changed feed articles.",
    no_args_is_help=True,
    rich_markup_mode=None,
)
feed_app = typer.Typer(name="feed", help="Manage and run feeds.", no_args_is_help=True, rich_markup_mode=None)
deliveries_app = typer.Typer(
    name="deliveries", help="Inspect the delivery ledger.", no_args_is_help=True, rich_markup_mode=None
)
log_app = typer.Typer(name="log", help="Inspect log files.", no_args_is_help=True, rich_markup_mode=None)

console = Console()


@dataclass
class AppState:
    repository: ConfigRepository
    storage: SQLiteManager
    ingestor: FeedIngestor
    workers: int = 8


_DURATION_PATTERN = re.compile(r"(?P<value>\d+)(?P<unit>[smhd])", re.IGNORECASE)


def _parse_duration_option(value: str, option_name: str) -> timedelta:
    text = value.strip().lower()
    if not text:
        raise BadParameter(f"{option_name} cannot be empty.")
    if text.isdigit():
        hours = int(text)
        if hours <= 0:
            raise BadParameter(f"{option_name} must be greater than 0.")
        return timedelta(hours=hours)
    total = timedelta()
    index = 0
    for match in _DURATION_PATTERN.finditer(text):
        if match.start() != index:
            raise BadParameter(f"{option_name} has an unsupported duration format: {value}")
        magnitude = int(match.group("value"))
        unit = match.group("unit").lower()
        if unit == "s":
            total += timedelta(seconds=magnitude)
        elif unit == "m":
            total += timedelta(minutes=magnitude)
        elif unit == "h":
            total += timedelta(hours=magnitude)
        else:
            total += timedelta(days=magnitude)
        index = match.end()
    if index != len(text) or total <= timedelta():
        raise BadParameter(f"{option_name} has an unsupported duration format: {value}")
    return total


def build_state(verbose: bool) -> AppState:
    repository = ConfigRepository()
    global_config = repository.load_global_config()
    storage = SQLiteManager()
    logger = configure_logging(verbose=verbose)

    fetcher = None
    if global_config.fetch_service.url:
        fetcher = FeedFetcher(global_config.fetch_service, logger=logger.bind(component="fetcher"))

    ingestor = FeedIngestor.from_storage(
        storage,
        repository.database_path(),
        fetcher=fetcher,
        mediums={global_config.default_medium_id: OutboxMedium(repository.outbox_dir())},
        logger=logger.bind(component="ingestor"),
        logger_factory=lambda feed_id: feed_logger(feed_id, verbose),
    )
    return AppState(
        repository=repository,
        storage=storage,
        ingestor=ingestor,
        workers=global_config.thread_pool_workers,
    )


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = _build_state_or_exit(verbose=False)
        ctx.obj = state
    return state


def _build_state_or_exit(verbose: bool) -> AppState:
    try:
        return build_state(verbose)
    except (FileNotFoundError, ValueError) as exc:
        console.print(str(exc), style="red", markup=False)
        raise typer.Exit(code=1)


def _list_feeds(state: AppState) -> list[FeedConfig]:
    try:
        return state.repository.list_feeds()
    except (FileNotFoundError, ValueError) as exc:
        console.print(str(exc), style="red", markup=False)
        raise typer.Exit(code=1)


def _load_feed(state: AppState, feed_id: str) -> FeedConfig:
    try:
        return state.repository.load_feed(feed_id)
    except (FileNotFoundError, ValueError) as exc:
        console.print(str(exc), style="red", markup=False)
        raise typer.Exit(code=1)


def _render_feeds_table(feeds: Sequence[FeedConfig]) -> Table:
    table = Table(title=f"Feeds · {len(feeds)} configured", box=box.SIMPLE_HEAD)
    table.add_column("Feed", style="cyan", no_wrap=True)
    table.add_column("Enabled", style="yellow")
    table.add_column("Comparisons", style="magenta")
    table.add_column("Rate limits", style="green")
    table.add_column("URL", style="blue", overflow="fold")
    for feed in feeds:
        table.add_row(
            feed.feed_id,
            "yes" if feed.enabled else "no",
            ", ".join(feed.comparison_fields) or "-",
            ", ".join(f"{limit.limit}/{limit.window_seconds}s" for limit in feed.rate_limits) or "-",
            feed.url,
        )
    return table


def _render_summaries(summaries: Sequence[IngestSummary], title: str) -> Table:
    table = Table(title=title, box=box.SIMPLE_HEAD)
    columns = ("parsed", "new", "changed", "unchanged", "sent", "failed", "rejected", "filtered_out", "throttled")
    table.add_column("Feed", style="cyan", no_wrap=True)
    for column in columns:
        table.add_column(column.replace("_", " "), justify="right")
    for summary in summaries:
        label = f"{summary.feed_id} (baseline)" if summary.baseline else summary.feed_id
        table.add_row(label, *(str(getattr(summary, column)) for column in columns))
    return table


app.add_typer(feed_app, name="feed")
app.add_typer(deliveries_app, name="deliveries")
app.add_typer(log_app, name="log")


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging.", is_flag=True),
) -> None:
    ctx.obj = _build_state_or_exit(verbose)


@app.command("parse", help="Parse a local RSS/Atom file and list its articles.")
def parse_command(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Feed file to parse."),
    limit: int = typer.Option(20, "--limit", min=1, help="Maximum rows to display."),
) -> None:
    try:
        result = FeedParser().parse(path.read_text(encoding="utf-8"))
    except FeedwatchError as exc:
        console.print(f"Invalid feed: {exc}", style="red")
        raise typer.Exit(code=1)
    table = Table(title=f"{result.title or path.name} · {len(result.articles)} articles", box=box.SIMPLE_HEAD)
    table.add_column("ID", style="cyan", overflow="fold")
    table.add_column("Title", style="green", overflow="fold")
    table.add_column("Link", style="blue", overflow="fold")
    for article in result.articles[:limit]:
        table.add_row(article.id, article.get("title") or "-", article.get("link") or "-")
    console.print(table)


@feed_app.command("list", help="List configured feeds.")
def feed_list(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    feeds = _list_feeds(state)
    if not feeds:
        console.print("No feeds configured. Use `feedwatch feed add` to create one.", style="yellow")
        raise typer.Exit(code=0)
    console.print(_render_feeds_table(feeds))


@feed_app.command("add", help="Create a feed configuration.")
def feed_add(
    ctx: typer.Context,
    feed_id: str = typer.Argument(..., help="Feed identifier."),
    url: str = typer.Option(..., "--url", "-u", help="Feed URL."),
    compare: Optional[list[str]] = typer.Option(None, "--compare", "-c", help="Comparison field (repeatable)."),
    strategy: ComparisonStrategy = typer.Option(
        ComparisonStrategy.ANY_CHANGED, "--strategy", help="How comparison fields detect a change."
    ),
    keyword: Optional[list[str]] = typer.Option(None, "--keyword", "-k", help="Keyword filter (repeatable)."),
    rate_limit: Optional[list[str]] = typer.Option(
        None, "--rate-limit", help="LIMIT:SECONDS delivery quota (repeatable)."
    ),
    medium: Optional[list[str]] = typer.Option(None, "--medium", help="Delivery medium id (repeatable)."),
) -> None:
    state = _get_state(ctx)
    if state.repository.feed_path(feed_id).exists():
        console.print(f"Feed `{feed_id}` already exists.", style="red")
        raise typer.Exit(code=1)
    try:
        limits = [RateLimit.parse(text) for text in rate_limit or []]
        config = FeedConfig(
            feed_id=feed_id,
            url=url,
            comparison_fields=compare or [],
            comparison_strategy=strategy,
            keywords_filter=keyword or [],
            rate_limits=limits,
            medium_ids=medium or [],
        )
    except (ValueError, ValidationError) as exc:
        console.print(f"Invalid feed configuration: {exc}", style="red")
        raise typer.Exit(code=1)
    path = state.repository.save_feed(config)
    console.print(f"Feed `{feed_id}` created at {path}", style="green")


@feed_app.command("remove", help="Delete a feed configuration.")
def feed_remove(
    ctx: typer.Context,
    feed_id: str = typer.Argument(..., help="Feed identifier."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation.", is_flag=True),
    forget: bool = typer.Option(
        False, "--forget", help="Also delete the feed's stored fingerprints.", is_flag=True
    ),
) -> None:
    state = _get_state(ctx)
    if not yes and not typer.confirm(f"Delete feed `{feed_id}`?"):
        raise typer.Exit(code=0)
    if not state.repository.delete_feed(feed_id):
        console.print(f"Feed `{feed_id}` not found.", style="red")
        raise typer.Exit(code=1)
    if forget:
        removed = state.ingestor.fingerprints.forget_feed(feed_id)
        console.print(f"Removed {removed} stored fingerprints.", style="dim")
    console.print(f"Feed `{feed_id}` deleted.", style="green")


@feed_app.command("run", help="Run one ingestion cycle for a feed.")
def feed_run(
    ctx: typer.Context,
    feed_id: str = typer.Argument(..., help="Feed identifier."),
    file: Optional[Path] = typer.Option(
        None, "--file", exists=True, dir_okay=False, help="Read feed text from a local file."
    ),
) -> None:
    state = _get_state(ctx)
    feed = _load_feed(state, feed_id)
    text = file.read_text(encoding="utf-8") if file else None
    try:
        summary = state.ingestor.run_feed(feed, feed_text=text)
    except (FeedwatchError, ValueError) as exc:
        console.print(f"Cycle failed for `{feed_id}`: {exc}", style="red")
        raise typer.Exit(code=1)
    console.print(_render_summaries([summary], "Cycle result"))


@feed_app.command("run-all", help="Run one ingestion cycle for every enabled feed.")
def feed_run_all(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    feeds = _list_feeds(state)
    if not feeds:
        console.print("No feeds configured.", style="yellow")
        raise typer.Exit(code=0)
    with IngestionPool(max_workers=state.workers) as pool:
        outcomes = state.ingestor.run_all(feeds, pool)
    summaries = [outcome.result for outcome in outcomes if outcome.ok and outcome.result is not None]
    if summaries:
        console.print(_render_summaries(summaries, "Batch result"))
    failures = [outcome for outcome in outcomes if not outcome.ok]
    for outcome in failures:
        console.print(f"{outcome.feed_id}: {outcome.error}", style="red")
    if failures:
        raise typer.Exit(code=1)


@feed_app.command("records", help="Show the most recent delivery records of a feed.")
def feed_records(
    ctx: typer.Context,
    feed_id: str = typer.Argument(..., help="Feed identifier."),
    limit: int = typer.Option(20, "--limit", min=1, help="Number of records to show."),
) -> None:
    state = _get_state(ctx)
    records = state.ingestor.ledger.records(feed_id, limit=limit)
    if not records:
        console.print("No delivery records yet.", style="dim")
        return
    table = Table(title=f"Delivery records · {feed_id}", box=box.SIMPLE_HEAD)
    for column in ("Article", "Medium", "Status", "Code", "Created"):
        table.add_column(column)
    for record in records:
        table.add_row(
            record.id,
            record.medium_id or "-",
            record.status.value,
            record.error_code or "-",
            record.created_at,
        )
    console.print(table)


@deliveries_app.command("count", help="Count sent and rejected deliveries in a trailing window.")
def deliveries_count(
    ctx: typer.Context,
    feed_id: str = typer.Argument(..., help="Feed identifier."),
    window: str = typer.Option("24h", "--window", help="Window such as 30m, 2h, 1d or 1h30m."),
    medium: Optional[str] = typer.Option(None, "--medium", help="Only count one medium."),
) -> None:
    state = _get_state(ctx)
    duration = _parse_duration_option(window, "--window")
    count = state.ingestor.rate_counter.count(feed_id, duration.total_seconds(), medium_id=medium)
    console.print(f"{feed_id}: {count} deliveries in the past {window}")


@log_app.command("list", help="List per-feed log files.")
def log_list() -> None:
    logs = list(available_feed_logs())
    if not logs:
        console.print("No feed logs yet.", style="dim")
        return
    table = Table(box=box.SIMPLE_HEAD)
    table.add_column("File", style="green")
    for path in logs:
        table.add_row(path.name)
    console.print(table)


@log_app.command("show", help="Show the tail of a log file.")
def log_show(
    feed_id: Optional[str] = typer.Option(None, "--feed", help="Feed identifier (global log when empty)."),
    tail: int = typer.Option(100, "--tail", min=1, help="Number of lines."),
) -> None:
    if feed_id:
        path = feed_log_path(feed_id)
    else:
        path = main_log_path()
    lines = tail_log(path, tail)
    if not lines:
        console.print("No log lines yet.", style="dim")
        return
    console.print(f"{path.name} · last {len(lines)} lines", style="cyan")
    console.print("".join(lines), markup=False)


__all__ = ["AppState", "app", "build_state"]
