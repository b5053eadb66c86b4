from __future__ import annotations

import calendar
import logging
import time
import xml.sax
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterator, List, Optional
from xml.sax.handler import ContentHandler, feature_external_ges

# Not re-exported at the top level; the 6.x layout is pinned in pyproject.toml
from feedparser.datetimes import _parse_date

from .exceptions import XmlParseError
from .models import Headline

logger = logging.getLogger(__name__)

DEFAULT_MAX_HEADLINES = 10
CHUNK_SIZE = 8192

_FIELDS = ("title", "link", "pubDate")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_pub_date(text: str) -> Optional[datetime]:
    """
    Parse an RFC-822 style <pubDate> ("Tue, 04 Mar 2025 14:05:00 GMT") into an aware
    UTC datetime. Returns None when the text is not a recognisable date.
    """
    parsed = _parse_date(text)
    if not isinstance(parsed, time.struct_time):
        return None
    return datetime.fromtimestamp(calendar.timegm(parsed), tz=timezone.utc)


@dataclass(frozen=True)
class ParseWarning:
    """Non-fatal problem found while parsing (the item is still kept)."""
    element: str
    text: str
    message: str


class _LimitReached(Exception):
    pass


class HeadlineParser(ContentHandler):
    """
    SAX state machine turning <item> elements into Headlines.

    `current_element` is the most recently opened tag. Inside an item, text for
    title/link/pubDate is accumulated into `title`, `url` and `published_at`; the
    item is finalised on </item>. Once `limit` headlines exist the parse is
    stopped early and the collected headlines are kept.
    """

    def __init__(self, limit: int = DEFAULT_MAX_HEADLINES, *, now: Callable[[], datetime] = _utcnow) -> None:
        super().__init__()
        self.limit = limit
        self._now = now
        self.headlines: List[Headline] = []
        self.warnings: List[ParseWarning] = []
        self.current_element = ""
        self.title = ""
        self.url = ""
        self.published_at = now()
        self._text: List[str] = []

    @property
    def full(self) -> bool:
        return len(self.headlines) >= self.limit

    def _reset_item(self) -> None:
        self.title = ""
        self.url = ""
        self.published_at = self._now()

    def _flush(self) -> None:
        # Chunks for one element (entities, CDATA, buffer splits) are joined before trimming
        text = "".join(self._text).strip()
        self._text = []
        if not text:
            return
        if self.current_element == "title":
            self.title += text
        elif self.current_element == "link":
            self.url += text
        elif self.current_element == "pubDate":
            parsed = parse_pub_date(text)
            if parsed is None:
                warning = ParseWarning("pubDate", text, "unrecognised date format")
                self.warnings.append(warning)
                logger.warning("Could not parse pubDate %r; keeping %s", text, self.published_at.isoformat())
            else:
                self.published_at = parsed

    # ContentHandler callbacks

    def startDocument(self) -> None:
        self.headlines = []
        self.warnings = []
        self.current_element = ""
        self._text = []
        self._reset_item()

    def startElement(self, name, attrs) -> None:
        self._flush()
        self.current_element = name
        if name == "item":
            self._reset_item()

    def characters(self, content) -> None:
        if self.current_element in _FIELDS:
            self._text.append(content)

    def endElement(self, name) -> None:
        self._flush()
        if name != "item":
            return
        headline = Headline(title=self.title, url=self.url, published_at=self.published_at)
        self.headlines.append(headline)
        logger.debug("Parsed headline %d: %s", len(self.headlines), headline.title)
        if self.full:
            raise _LimitReached()

    def endDocument(self) -> None:
        logger.debug("Finished document with %d headline(s)", len(self.headlines))


def _chunks(data: bytes, size: int = CHUNK_SIZE) -> Iterator[bytes]:
    for start in range(0, len(data), size):
        yield data[start:start + size]


def run_parser(handler: HeadlineParser, data: bytes) -> List[Headline]:
    """Feed `data` through an incremental SAX reader driving `handler`."""
    reader = xml.sax.make_parser()
    reader.setFeature(feature_external_ges, False)
    reader.setContentHandler(handler)
    try:
        for chunk in _chunks(data):
            reader.feed(chunk)
        reader.close()
    except _LimitReached:
        logger.info("Stopped parsing at the %d headline limit", handler.limit)
    except xml.sax.SAXException as e:
        raise XmlParseError(f"Feed XML could not be parsed: {e}") from e
    return list(handler.headlines)


def parse_feed(data: bytes, limit: int = DEFAULT_MAX_HEADLINES) -> List[Headline]:
    """
    Parse an RSS document into at most `limit` Headlines, in document order.

    Raises XmlParseError when the XML is malformed, even if some items had
    already been read.
    """
    return run_parser(HeadlineParser(limit), data)
