class ItsFineError(Exception):
    """Base class for every error the headline pipeline reports."""


class ConfigError(ItsFineError):
    """Raised when an environment setting cannot be interpreted."""


class RSSFetchError(ItsFineError):
    """Raised when the headline feed cannot be fetched or parsed."""


class RewriteError(ItsFineError):
    """Raised when a batch of headlines cannot be rewritten."""


class TransportError(RSSFetchError, RewriteError):
    """Raised when the network call itself fails (feed or rewrite endpoint)."""


class EmptyBodyError(RSSFetchError):
    """Raised when the feed host answers with no bytes."""


class EncodingError(RSSFetchError):
    """Raised when the feed body is not valid UTF-8 text."""


class MalformedFeedError(RSSFetchError):
    """Raised when no <rss ...> ... </rss> envelope can be found in the body."""


class XmlParseError(RSSFetchError):
    """Raised when the XML parser rejects the extracted envelope."""


class EmptyResponseError(RewriteError):
    """Raised when the rewrite endpoint answers with an empty body."""


class ResponseParseError(RewriteError):
    """Raised when the rewrite response is not a chat completion document."""


class NoChoiceError(RewriteError):
    """Raised when the chat completion carries no assistant message."""


class CountMismatchError(RewriteError):
    """Raised when the number of rewritten lines differs from the number of inputs."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(
            f"Rewrite returned {actual} headline(s) for {expected} input(s)"
        )
        self.expected = expected
        self.actual = actual
