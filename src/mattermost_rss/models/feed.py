"""
Feed subscription configuration model.
"""

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from mattermost_rss.logger import get_logger

logger = get_logger(__name__)


class FeedConfig(BaseModel):
    """Configuration of a single subscribed feed.

    Accepts both snake_case keys and the CamelCase keys used by feed files
    written by older releases (``Name``, ``URL``, ``IconUrl`` ...).
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(
        default="", max_length=500,
        validation_alias=AliasChoices("name", "Name"),
        description="Display name, unique among subscriptions",
    )
    url: str = Field(
        ..., max_length=2048,
        validation_alias=AliasChoices("url", "URL", "Url"),
        description="Feed URL",
    )
    icon_url: str = Field(
        default="",
        validation_alias=AliasChoices("icon_url", "IconUrl", "IconURL"),
        description="Icon shown next to posts (falls back to global icon)",
    )
    username: str = Field(
        default="",
        validation_alias=AliasChoices("username", "Username"),
        description="Poster name (falls back to global username)",
    )
    channel: str = Field(
        default="",
        validation_alias=AliasChoices("channel", "Channel"),
        description="Target channel (falls back to global channel)",
    )
    detailed: bool = Field(
        default=False,
        validation_alias=AliasChoices("detailed", "Detailed"),
        description="Post entries as detailed attachments",
    )

    @field_validator("name", "icon_url", "username", "channel", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        """Treat explicit nulls as unset."""
        return "" if v is None else v

    @field_validator("url")
    @classmethod
    def strip_url(cls, v: str) -> str:
        """Strip surrounding whitespace from the URL."""
        return v.strip()

    @property
    def label(self) -> str:
        """Name for log messages."""
        return self.name or self.url


def filter_feed_definitions(raw_feeds: Any) -> list:
    """Drop raw feed definitions that carry no URL.

    Args:
        raw_feeds: Parsed JSON/YAML list of feed objects

    Returns:
        List of definitions that have a non-empty URL
    """
    if raw_feeds is None:
        return []
    if not isinstance(raw_feeds, list):
        return raw_feeds

    kept = []
    for feed in raw_feeds:
        if isinstance(feed, FeedConfig):
            kept.append(feed)
            continue
        if isinstance(feed, dict):
            url = feed.get("url") or feed.get("URL") or feed.get("Url")
            if not url or not str(url).strip():
                logger.warning(f"Dropping feed without URL: {feed.get('name') or feed.get('Name')!r}")
                continue
        kept.append(feed)
    return kept
