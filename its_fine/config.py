"""
Runtime settings for the headline pipeline.

Values come from the process environment, optionally seeded from a `.env`
file. Secrets (OpenAI key, Discord token) never appear in `repr()`.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Callable, Optional, TypeVar

from dotenv import load_dotenv

from .exceptions import ConfigError

DEFAULT_FEED_URL = "https://rss.politico.com/politics-news.xml"
DEFAULT_MAX_HEADLINES = 10
DEFAULT_OPENAI_MODEL = "gpt-4o"
DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

T = TypeVar("T")


def _env(name: str, cast: Callable[[str], T], default: Optional[T]) -> Optional[T]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw.strip())
    except ValueError as e:
        raise ConfigError(f"Invalid value for {name}: {raw!r}") from e


@dataclass(frozen=True)
class Settings:
    feed_url: str = DEFAULT_FEED_URL
    max_headlines: int = DEFAULT_MAX_HEADLINES
    feed_timeout: Optional[float] = None  # None: transport default
    openai_api_key: str = field(default="", repr=False)
    openai_model: str = DEFAULT_OPENAI_MODEL
    openai_base_url: str = DEFAULT_OPENAI_BASE_URL
    max_history_turns: Optional[int] = None  # None: unbounded
    log_level: str = "INFO"
    discord_token: str = field(default="", repr=False)

    @classmethod
    def from_env(cls, *, dotenv: bool = True) -> "Settings":
        if dotenv:
            load_dotenv()
        max_headlines = _env("ITS_FINE_MAX_HEADLINES", int, DEFAULT_MAX_HEADLINES)
        if max_headlines is not None and max_headlines < 1:
            raise ConfigError("ITS_FINE_MAX_HEADLINES must be at least 1")
        turns = _env("ITS_FINE_HISTORY_TURNS", int, None)
        if turns is not None and turns < 1:
            raise ConfigError("ITS_FINE_HISTORY_TURNS must be at least 1")
        return cls(
            feed_url=os.getenv("ITS_FINE_FEED_URL") or DEFAULT_FEED_URL,
            max_headlines=max_headlines,
            feed_timeout=_env("ITS_FINE_FEED_TIMEOUT", float, None),
            openai_api_key=os.getenv("OPENAI_API_KEY", ""),
            openai_model=os.getenv("OPENAI_MODEL") or DEFAULT_OPENAI_MODEL,
            openai_base_url=os.getenv("OPENAI_BASE_URL") or DEFAULT_OPENAI_BASE_URL,
            max_history_turns=turns,
            log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
            discord_token=os.getenv("DISCORD_BOT_TOKEN", ""),
        )


def configure_logging(level: str = "INFO") -> None:
    """Install the root handler. Only entry points should call this."""
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
