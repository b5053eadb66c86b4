"""
Pytest fixtures shared by the pipeline tests.
"""

import json
from typing import Callable, List, Optional, Sequence, Tuple

import httpx
import pytest
import requests
from openai import OpenAI


def make_rss(items: Sequence[Tuple[str, str, str]], channel_title: str = "Politics News") -> str:
    """Build an RSS 2.0 document from (title, link, pubDate) tuples."""
    body = "".join(
        f"""
        <item>
            <title>{title}</title>
            <link>{link}</link>
            <pubDate>{pub_date}</pubDate>
            <description>Story text</description>
        </item>"""
        for title, link, pub_date in items
    )
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
    <channel>
        <title>{channel_title}</title>
        <link>https://news.example.com/</link>{body}
    </channel>
</rss>
"""


def numbered_items(count: int) -> List[Tuple[str, str, str]]:
    return [
        (f"Headline number {i}", f"https://news.example.com/{i}", f"Tue, 04 Mar 2025 {i % 24:02d}:00:00 GMT")
        for i in range(count)
    ]


@pytest.fixture
def three_item_feed() -> str:
    return make_rss([
        ("Senate stalls on budget deal", "https://news.example.com/budget", "Tue, 04 Mar 2025 14:05:00 GMT"),
        ("Storm knocks out power to thousands", "https://news.example.com/storm", "Tue, 04 Mar 2025 12:30:00 GMT"),
        ("Markets slide on rate fears", "https://news.example.com/markets", "Mon, 03 Mar 2025 22:00:00 GMT"),
    ])


class FakeResponse:
    def __init__(self, content: bytes = b"", status_code: int = 200):
        self.content = content
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")


class FakeSession:
    """Stands in for requests.Session; returns one canned response or raises."""

    def __init__(self, response: Optional[FakeResponse] = None, error: Optional[Exception] = None):
        self.response = response or FakeResponse()
        self.error = error
        self.calls: List[dict] = []

    def get(self, url, timeout=None):
        self.calls.append({"url": url, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response

    def close(self):
        pass


@pytest.fixture
def fake_session() -> Callable[..., FakeSession]:
    def factory(content=b"", status_code=200, error=None):
        if isinstance(content, str):
            content = content.encode("utf-8")
        return FakeSession(FakeResponse(content, status_code), error)
    return factory


def chat_completion(content: Optional[str], **overrides) -> dict:
    """A chat completion document as the rewrite endpoint returns it."""
    doc = {
        "id": "chatcmpl-123",
        "object": "chat.completion",
        "created": 1741100000,
        "model": "gpt-4o",
        "choices": [{
            "index": 0,
            "message": {"role": "assistant", "content": content},
            "finish_reason": "stop",
        }],
        "usage": {"prompt_tokens": 120, "completion_tokens": 40, "total_tokens": 160},
    }
    doc.update(overrides)
    return doc


class ChatEndpoint:
    """
    Mock transport for the openai client.

    Queued items are dicts (sent as JSON), httpx.Response objects (sent as is)
    or exceptions (raised as transport failures). Request bodies are recorded.
    """

    def __init__(self):
        self.queue: list = []
        self.requests: List[dict] = []
        self.headers: List[httpx.Headers] = []

    def reply(self, item):
        self.queue.append(item)
        return self

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        self.headers.append(request.headers)
        item = self.queue.pop(0)
        if isinstance(item, Exception):
            raise item
        if isinstance(item, httpx.Response):
            return item
        return httpx.Response(200, json=item)

    def client(self) -> OpenAI:
        return OpenAI(
            api_key="test-key",
            base_url="https://llm.example.com/v1",
            max_retries=0,
            http_client=httpx.Client(transport=httpx.MockTransport(self)),
        )


@pytest.fixture
def chat_endpoint() -> ChatEndpoint:
    return ChatEndpoint()
