"""Data models for mattermost-rss-reader."""

from mattermost_rss.models.entry import EntryIdentity, FeedEntry
from mattermost_rss.models.feed import FeedConfig, filter_feed_definitions
from mattermost_rss.models.message import MattermostAttachment, MattermostMessage

__all__ = [
    "EntryIdentity",
    "FeedEntry",
    "FeedConfig",
    "filter_feed_definitions",
    "MattermostAttachment",
    "MattermostMessage",
]
