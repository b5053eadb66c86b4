"""
Tests for how the Discord front end renders pipeline snapshots and notices.
"""

from datetime import datetime, timezone
from types import SimpleNamespace

from discord_bot import MESSAGE_LIMIT, format_snapshot, rewrite_notice
from its_fine.core import PipelineSnapshot, PipelineState
from its_fine.models import Headline


def headline(title, url="https://news.example.com/a"):
    return Headline(title, url, datetime(2025, 3, 4, 14, 5, tzinfo=timezone.utc))


def test_ready_lists_headlines():
    text = format_snapshot(PipelineSnapshot(PipelineState.READY, (headline("Puppies everywhere"),)))

    assert "**Puppies everywhere**" in text
    assert "*2025-03-04 14:05*" in text
    assert "<https://news.example.com/a>" in text


def test_rewritten_item_without_url():
    text = format_snapshot(PipelineSnapshot(PipelineState.READY, (headline("No link", url=""),)))
    assert "<>" not in text


def test_failed_shows_error_not_headlines():
    snap = PipelineSnapshot(PipelineState.FAILED, (headline("Hidden"),), "Feed is down")
    text = format_snapshot(snap)

    assert "Feed is down" in text
    assert "!news" in text
    assert "Hidden" not in text


def test_loading():
    assert "Loading" in format_snapshot(PipelineSnapshot(PipelineState.LOADING, ()))


def test_idle_without_headlines():
    assert "!news" in format_snapshot(PipelineSnapshot(PipelineState.IDLE, ()))


def test_long_lists_are_truncated():
    items = tuple(headline("x" * 300) for _ in range(10))
    text = format_snapshot(PipelineSnapshot(PipelineState.READY, items))

    assert len(text) == MESSAGE_LIMIT
    assert text.endswith("...")


def test_notice_before_slow_rewrite():
    pipeline = SimpleNamespace(headlines=[headline("Bad news")], has_prefetched=False)
    assert rewrite_notice(pipeline) == "Making things fine..."


def test_no_notice_when_rewrite_is_ready():
    pipeline = SimpleNamespace(headlines=[headline("Bad news")], has_prefetched=True)
    assert rewrite_notice(pipeline) is None


def test_no_notice_without_headlines():
    pipeline = SimpleNamespace(headlines=[], has_prefetched=False)
    assert rewrite_notice(pipeline) is None
