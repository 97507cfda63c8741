"""
A subscription to a single feed: configuration, parser and seen entries.
"""

import time
from dataclasses import dataclass, field
from typing import Optional, Protocol

from mattermost_rss.core.seen import SeenSet
from mattermost_rss.exceptions import FetchError
from mattermost_rss.logger import get_logger
from mattermost_rss.models.entry import FeedEntry
from mattermost_rss.models.feed import FeedConfig

logger = get_logger(__name__)


class EntrySource(Protocol):
    """Anything that can turn a feed URL into entries."""

    def parse(self, url: str) -> list[FeedEntry]:
        ...


@dataclass
class FetchResult:
    """Result of fetching one subscription."""

    success: bool
    feed_name: str
    feed_url: str
    entries: list[FeedEntry] = field(default_factory=list)
    error: Optional[FetchError] = None
    fetch_time_seconds: float = 0.0

    def __post_init__(self):
        """Validate fetch result."""
        if self.success and self.error:
            raise ValueError("Successful fetch cannot have an error")
        if not self.success and not self.error:
            self.error = FetchError(self.feed_url, "Unknown error")

    @property
    def entries_count(self) -> int:
        return len(self.entries)

    @property
    def status_code(self) -> Optional[int]:
        """HTTP status of a failed fetch, if the server answered."""
        return self.error.status_code if self.error else None


class Subscription:
    """Holds the configuration to fetch updates from a single URL.

    Each subscription owns its parser and its record of shown entries;
    neither is shared with other subscriptions.
    """

    def __init__(
        self,
        config: FeedConfig,
        parser: Optional[EntrySource] = None,
        seen: Optional[SeenSet] = None,
    ):
        """Initialize subscription.

        Args:
            config: Feed configuration
            parser: Entry source (a new FeedParser if omitted)
            seen: Seen-set (a new empty one if omitted)
        """
        if parser is None:
            from mattermost_rss.core.parser import FeedParser

            parser = FeedParser()

        self.config = config
        self.parser = parser
        self.seen = seen if seen is not None else SeenSet()

    @property
    def name(self) -> str:
        return self.config.name

    def fetch_updates(self) -> FetchResult:
        """Fetch the current entries of the feed.

        Never raises for fetch problems; a failed fetch yields no entries
        and carries the FetchError.
        """
        start_time = time.monotonic()
        url = self.config.url

        try:
            entries = list(self.parser.parse(url))
        except FetchError as e:
            return FetchResult(
                success=False,
                feed_name=self.name,
                feed_url=url,
                error=e,
                fetch_time_seconds=time.monotonic() - start_time,
            )
        except Exception as e:
            # Malformed documents can trip up the parser in unexpected ways
            logger.exception(f"Unexpected error fetching {url}: {e}")
            return FetchResult(
                success=False,
                feed_name=self.name,
                feed_url=url,
                error=FetchError(url, f"Unexpected error: {type(e).__name__}: {e}"),
                fetch_time_seconds=time.monotonic() - start_time,
            )

        fetch_time = time.monotonic() - start_time
        logger.debug(f"Fetched {len(entries)} entries from {self.config.label} in {fetch_time:.2f}s")

        return FetchResult(
            success=True,
            feed_name=self.name,
            feed_url=url,
            entries=entries,
            fetch_time_seconds=fetch_time,
        )

    def shown(self, entry: FeedEntry) -> bool:
        """Return True if the entry has already been shown."""
        return self.seen.was_seen(entry)

    def is_new(self, entry: FeedEntry) -> bool:
        """Return True if the entry has not been shown yet."""
        return not self.shown(entry)

    def record(self, entry: FeedEntry) -> None:
        """Mark the entry as shown."""
        self.seen.mark_seen(entry)

    def __repr__(self) -> str:
        return f"<Subscription(name='{self.name}', url='{self.config.url}', seen={len(self.seen)})>"
