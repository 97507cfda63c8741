"""Core feed handling: entry identity, subscriptions and the dispatch loop."""

from mattermost_rss.core.dispatcher import (
    DeliveryItem,
    DispatchStats,
    FeedDispatcher,
    create_dispatcher,
)
from mattermost_rss.core.formatter import format_message, sanitize
from mattermost_rss.core.identity import entries_equal
from mattermost_rss.core.parser import FeedParser
from mattermost_rss.core.publisher import WebhookPublisher
from mattermost_rss.core.scheduler import JobStatus, PollScheduler
from mattermost_rss.core.seen import SeenSet
from mattermost_rss.core.subscription import FetchResult, Subscription

__all__ = [
    "DeliveryItem",
    "DispatchStats",
    "FeedDispatcher",
    "create_dispatcher",
    "format_message",
    "sanitize",
    "entries_equal",
    "FeedParser",
    "WebhookPublisher",
    "JobStatus",
    "PollScheduler",
    "SeenSet",
    "FetchResult",
    "Subscription",
]
