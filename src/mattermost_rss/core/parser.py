"""
RSS/Atom feed parser with error handling and retry logic.

Downloads a feed with httpx, parses it with feedparser and converts the
items into FeedEntry objects.
"""

import time
from typing import Any, Optional

import feedparser
import httpx

from mattermost_rss.config import FetcherConfig, get_config
from mattermost_rss.exceptions import FetchError
from mattermost_rss.logger import get_logger
from mattermost_rss.models.entry import FeedEntry

logger = get_logger(__name__)


class FeedParser:
    """Turns a feed URL into a list of entries."""

    def __init__(
        self,
        fetcher_config: Optional[FetcherConfig] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """Initialize feed parser.

        Args:
            fetcher_config: HTTP settings (defaults to the global config)
            transport: Optional httpx transport, used by tests
        """
        config = fetcher_config or get_config().fetcher

        self.timeout_seconds = config.timeout_seconds
        self.max_retries = config.max_retries
        self.retry_delay_seconds = config.retry_delay_seconds
        self.user_agent = config.user_agent
        self.follow_redirects = config.follow_redirects
        self.max_redirects = config.max_redirects
        self.transport = transport

    def parse(self, url: str) -> list[FeedEntry]:
        """Fetch and parse a feed.

        Args:
            url: Feed URL

        Returns:
            Entries in feed order

        Raises:
            FetchError: On network, HTTP or parse failure
        """
        last_error: Optional[FetchError] = None

        for attempt in range(self.max_retries + 1):
            try:
                response = self._fetch_http(url)
                return self.parse_document(url, response.content)

            except httpx.TimeoutException as e:
                last_error = FetchError(url, f"Timeout: {e}")
                logger.warning(f"Timeout fetching {url} (attempt {attempt + 1}/{self.max_retries + 1})")

            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                last_error = FetchError(url, f"HTTP {status}", status_code=status)

                # Don't retry client errors (4xx)
                if 400 <= status < 500:
                    break

                logger.warning(f"HTTP {status} fetching {url} (attempt {attempt + 1})")

            except httpx.RequestError as e:
                last_error = FetchError(url, f"Request error: {e}")
                logger.warning(f"Network error fetching {url} (attempt {attempt + 1})")

            # Retry delay
            if attempt < self.max_retries and self.retry_delay_seconds:
                time.sleep(self.retry_delay_seconds * (attempt + 1))

        raise last_error or FetchError(url, "Unknown error")

    def _fetch_http(self, url: str) -> httpx.Response:
        """Fetch URL with HTTP client.

        Raises:
            httpx.TimeoutException: On timeout
            httpx.HTTPStatusError: On HTTP error
            httpx.RequestError: On network error
        """
        headers = {"User-Agent": self.user_agent}

        with httpx.Client(
            timeout=self.timeout_seconds,
            follow_redirects=self.follow_redirects,
            max_redirects=self.max_redirects,
            transport=self.transport,
        ) as client:
            response = client.get(url, headers=headers)
            response.raise_for_status()
            return response

    def parse_document(self, url: str, document: bytes) -> list[FeedEntry]:
        """Parse a downloaded feed document.

        Args:
            url: URL the document came from (for error messages)
            document: Raw feed bytes

        Raises:
            FetchError: If the document is not a feed
        """
        parsed = feedparser.parse(document)

        # feedparser flags recoverable problems as bozo too; only give up
        # when it could not recognise any feed format
        if not parsed.get("version"):
            reason = parsed.get("bozo_exception") or "not a feed"
            raise FetchError(url, f"Parse error: {reason}")

        return [entry_from_feedparser(raw) for raw in parsed.get("entries", [])]


def entry_from_feedparser(raw: Any) -> FeedEntry:
    """Convert a feedparser entry into a FeedEntry.

    Args:
        raw: Entry dictionary from feedparser

    Returns:
        FeedEntry with the fields relevant for posting
    """
    content = ""
    contents = raw.get("content") or []
    if contents:
        content = contents[0].get("value") or ""

    return FeedEntry(
        guid=(raw.get("id") or "").strip(),
        title=(raw.get("title") or "").strip(),
        link=(raw.get("link") or "").strip(),
        description=raw.get("summary") or "",
        content=content,
        image=_extract_image(raw),
        authors=_extract_authors(raw),
    )


def _extract_image(raw: Any) -> Optional[str]:
    """Find an image URL in the usual places."""
    for thumbnail in raw.get("media_thumbnail") or []:
        if thumbnail.get("url"):
            return thumbnail["url"]

    for media in raw.get("media_content") or []:
        is_image = media.get("medium") == "image" or (media.get("type") or "").startswith("image/")
        if is_image and media.get("url"):
            return media["url"]

    for link in raw.get("links") or []:
        if link.get("rel") == "enclosure" and (link.get("type") or "").startswith("image/"):
            if link.get("href"):
                return link["href"]

    # itunes:image and similar
    image = raw.get("image")
    if isinstance(image, dict) and image.get("href"):
        return image["href"]

    return None


def _extract_authors(raw: Any) -> tuple[str, ...]:
    """Collect author names in feed order."""
    names = [a.get("name") for a in raw.get("authors") or [] if a.get("name")]
    if not names and raw.get("author"):
        names = [raw["author"]]
    return tuple(names)
