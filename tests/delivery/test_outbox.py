from __future__ import annotations

import json
from pathlib import Path

from feedwatch.delivery import ArticleDeliveryErrorCode, ArticleDeliveryStatus, DeliveryDetails, OutboxMedium
from feedwatch.engine import Article


def test_outbox_appends_json_lines(tmp_path: Path) -> None:
    medium = OutboxMedium(tmp_path / "outbox")
    details = DeliveryDetails(
        "d1", "default", feed_details={"id": "example wire", "url": "https://example.com/rss"}
    )

    first = medium.deliver_article(Article("a1", {"title": "One"}), details)
    medium.deliver_article(Article("a2"), details)

    assert first.status is ArticleDeliveryStatus.SENT
    path = medium.path_for("example wire")
    assert path.name == "example_wire.jsonl"
    lines = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert [line["article"]["id"] for line in lines] == ["a1", "a2"]
    assert lines[0]["article"]["title"] == "One"
    assert lines[0]["feed"]["url"] == "https://example.com/rss"


def test_outbox_reports_unwritable_directory(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    medium = OutboxMedium(blocker)

    state = medium.deliver_article(Article("a1"), DeliveryDetails("d1", "default", feed_details={"id": "f"}))
    assert state.status is ArticleDeliveryStatus.FAILED
    assert state.error_code is ArticleDeliveryErrorCode.NO_CHANNEL_OR_WEBHOOK
