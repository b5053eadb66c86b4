"""
its_fine

Reads a news RSS feed and, on request, rewrites the headlines through a chat model
into ever more optimistic satire. The next rewrite is prepared in the background
so it can be shown instantly.

Core ideas:
- Input: one RSS 2.0 feed URL
- Process: fetch → extract <rss> envelope → streaming parse (first 10 items) → show
  → rewrite (intensity rises with every call) → pre-fetch the next rewrite
- Output: List[Headline], published with loading/error state to any front end

Example
-------
import asyncio
from its_fine import Settings, build_coordinator

async def main():
    async with build_coordinator(Settings.from_env()) as pipeline:
        await pipeline.start()
        await pipeline.request_rewrite()
        for item in pipeline.headlines:
            print(item.published_at, item.title)

asyncio.run(main())
"""
from .models import Headline
from .config import Settings, configure_logging
from .fetcher import HeadlineFetcher
from .parser import parse_feed
from .rewriter import HeadlineRewriter
from .core import PipelineCoordinator, PipelineSnapshot, PipelineState, build_coordinator

__all__ = [
    "Headline",
    "Settings",
    "configure_logging",
    "HeadlineFetcher",
    "parse_feed",
    "HeadlineRewriter",
    "PipelineCoordinator",
    "PipelineSnapshot",
    "PipelineState",
    "build_coordinator",
]
