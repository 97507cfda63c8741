"""Persistence of the subscription list."""

from mattermost_rss.storage.feed_store import FeedStore

__all__ = ["FeedStore"]
