"""Shared fixtures for mattermost-rss-reader tests."""

from datetime import timedelta

import pytest

from mattermost_rss.config import Config, FetcherConfig, set_config
from mattermost_rss.exceptions import FetchError, PublishError
from mattermost_rss.models.entry import FeedEntry
from mattermost_rss.models.feed import FeedConfig


def make_entry(n: int, guid: str = None, **kwargs) -> FeedEntry:
    """Create entry number ``n`` with a stable title and link."""
    fields = {
        "guid": f"guid-{n}" if guid is None else guid,
        "title": f"Entry {n}",
        "link": f"https://example.com/entries/{n}",
        "description": f"<p>Summary of entry {n}</p>",
    }
    fields.update(kwargs)
    return FeedEntry(**fields)


class FakeSource:
    """Entry source serving canned entries or errors per URL."""

    def __init__(self):
        self.entries: dict[str, list[FeedEntry]] = {}
        self.errors: dict[str, Exception] = {}
        self.calls: list[str] = []

    def set_entries(self, url: str, entries: list[FeedEntry]) -> None:
        self.entries[url] = list(entries)
        self.errors.pop(url, None)

    def fail(self, url: str, error: Exception = None) -> None:
        self.errors[url] = error or FetchError(url, "HTTP 500", status_code=500)

    def parse(self, url: str) -> list[FeedEntry]:
        self.calls.append(url)
        if url in self.errors:
            raise self.errors[url]
        return list(self.entries.get(url, []))


class FakePublisher:
    """Publisher that records messages and fails for selected texts."""

    def __init__(self):
        self.messages = []
        self.fail_containing: set[str] = set()

    def publish(self, message) -> None:
        body = message.text or " ".join(a.title for a in message.attachments)
        if any(marker in body for marker in self.fail_containing):
            raise PublishError("Webhook returned HTTP 500", status_code=500)
        self.messages.append(message)


@pytest.fixture
def feed_config():
    """Create a feed configuration."""
    return FeedConfig(
        name="example",
        url="https://example.com/feed.xml",
        channel="news",
        username="example-bot",
        icon_url="https://example.com/icon.png",
    )


@pytest.fixture
def fake_source():
    """Create a fake entry source."""
    return FakeSource()


@pytest.fixture
def fake_publisher():
    """Create a fake publisher."""
    return FakePublisher()


@pytest.fixture
def config(feed_config):
    """Create an application config without touching the environment files."""
    return Config(
        _env_file=None,
        webhook_url="https://mattermost.example.com/hooks/abc",
        token="secret-token",
        channel="town-square",
        username="rss",
        icon_url="https://example.com/default.png",
        interval=timedelta(minutes=5),
        feeds=[feed_config],
        fetcher=FetcherConfig(retry_delay_seconds=0, max_retries=1),
    )


@pytest.fixture(autouse=True)
def global_config(config):
    """Install the test config as the global instance."""
    set_config(config)
    yield config
    set_config(None)
