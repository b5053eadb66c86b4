from __future__ import annotations

import logging
from typing import List, Optional

import requests

from .exceptions import EmptyBodyError, EncodingError, MalformedFeedError, TransportError
from .models import Headline
from .parser import DEFAULT_MAX_HEADLINES, HeadlineParser, run_parser

logger = logging.getLogger(__name__)

_RSS_OPEN = "<rss"
_RSS_CLOSE = "</rss>"


def download_feed(url: str, *, session: requests.Session, timeout: Optional[float] = None) -> bytes:
    """
    GET the feed and return the raw body.

    Raises TransportError on network failure or a non-2xx status, EmptyBodyError
    when the host returns nothing.
    """
    try:
        resp = session.get(url, timeout=timeout)
        resp.raise_for_status()
    except requests.RequestException as e:
        raise TransportError(f"Failed to fetch feed: {url} ({e})") from e

    body = resp.content
    if not body:
        raise EmptyBodyError(f"Feed returned no data: {url}")
    logger.info("Received %d bytes from %s", len(body), url)
    return body


def decode_body(body: bytes) -> str:
    try:
        return body.decode("utf-8")
    except UnicodeDecodeError as e:
        raise EncodingError(f"Feed body is not valid UTF-8 ({e.reason})") from e


def extract_rss_envelope(text: str) -> str:
    """
    Return the `<rss ...> ... </rss>` part of `text`, tags included.

    Feeds are sometimes served wrapped in HTML or with junk around the document;
    only the envelope is handed to the XML parser. Matching is case-insensitive.
    """
    lowered = text.lower()
    start = lowered.find(_RSS_OPEN)
    end = lowered.find(_RSS_CLOSE, start + len(_RSS_OPEN)) if start != -1 else -1
    if start == -1 or end == -1:
        raise MalformedFeedError("RSS feed is not properly formatted: no <rss> ... </rss> envelope")
    return text[start:end + len(_RSS_CLOSE)]


class HeadlineFetcher:
    """
    Fetch the configured feed and return its first `limit` items as Headlines.

    fetch → decode → extract <rss> envelope → streaming parse
    """

    def __init__(
        self,
        url: str,
        *,
        limit: int = DEFAULT_MAX_HEADLINES,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.url = url
        self.limit = limit
        self.timeout = timeout
        self._session = session or requests.Session()

    def fetch(self) -> List[Headline]:
        logger.info("Fetching headlines from %s", self.url)
        body = download_feed(self.url, session=self._session, timeout=self.timeout)
        envelope = extract_rss_envelope(decode_body(body))
        logger.debug("Extracted <rss> envelope of %d characters", len(envelope))

        handler = HeadlineParser(self.limit)
        headlines = run_parser(handler, envelope.encode("utf-8"))
        if handler.warnings:
            logger.info("Parsed with %d warning(s)", len(handler.warnings))
        logger.info("Fetched %d headline(s)", len(headlines))
        return headlines

    def close(self) -> None:
        self._session.close()
