"""
Poll-and-dispatch loop.

Two independent activities share a bounded FIFO queue:

* the poll cycle, fired by the PollScheduler timer (or a manual trigger),
  fetches every subscription in configuration order and enqueues the
  entries that have not been shown yet;
* the delivery thread takes items off the queue one at a time, formats
  them and posts them to the webhook.

The cycle blocks on a full queue, the delivery thread blocks on an empty
one, so neither side can starve the other.
"""

import queue
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from mattermost_rss.config import Config, get_config
from mattermost_rss.core.formatter import format_message
from mattermost_rss.core.parser import FeedParser
from mattermost_rss.core.publisher import WebhookPublisher
from mattermost_rss.core.scheduler import PollScheduler
from mattermost_rss.core.subscription import EntrySource, Subscription
from mattermost_rss.exceptions import PublishError
from mattermost_rss.logger import get_logger
from mattermost_rss.models.entry import FeedEntry
from mattermost_rss.models.feed import FeedConfig
from mattermost_rss.models.message import MattermostMessage

logger = get_logger(__name__)

Formatter = Callable[[FeedEntry, FeedConfig, Config], MattermostMessage]


@dataclass(frozen=True)
class DeliveryItem:
    """An entry waiting to be posted, with the feed it came from."""

    entry: FeedEntry
    feed: FeedConfig


@dataclass
class DispatchStats:
    """Counters for poll cycles and deliveries."""

    cycles: int = 0
    fetch_errors: int = 0
    entries_fetched: int = 0
    enqueued: int = 0
    delivered: int = 0
    publish_errors: int = 0
    last_cycle_at: Optional[datetime] = None
    last_cycle_seconds: float = 0.0


class FeedDispatcher:
    """Owns the subscriptions, the delivery queue and both loop activities."""

    def __init__(
        self,
        config: Optional[Config] = None,
        publisher: Optional[WebhookPublisher] = None,
        formatter: Formatter = format_message,
        parser_factory: Optional[Callable[[], EntrySource]] = None,
    ):
        """Initialize dispatcher.

        Args:
            config: Application config (defaults to the global config)
            publisher: Webhook publisher (built from config if omitted)
            formatter: Turns an entry into a message
            parser_factory: Builds the parser of each new subscription
        """
        config = config or get_config()

        self.config = config
        self.skip_initial = config.skip_initial
        self.show_initial = config.show_initial
        self.publisher = publisher or WebhookPublisher(config)
        self.formatter = formatter
        self.parser_factory = parser_factory or (lambda: FeedParser(config.fetcher))

        self.queue: "queue.Queue[Optional[DeliveryItem]]" = queue.Queue(
            maxsize=config.scheduler.queue_size
        )
        self.scheduler = PollScheduler(self.run_cycle, config.interval, config.scheduler)
        self.stats = DispatchStats()

        self._initial_run = True
        self._subscriptions: list[Subscription] = [self._new_subscription(f) for f in config.feeds]
        self._lock = threading.Lock()
        self._cycle_lock = threading.Lock()
        self._worker: Optional[threading.Thread] = None

    # ------------------------------------------------------------------
    # Subscription management
    # ------------------------------------------------------------------

    def _new_subscription(self, feed: FeedConfig) -> Subscription:
        return Subscription(feed, parser=self.parser_factory())

    @property
    def initial_run(self) -> bool:
        """True until the first poll cycle has started."""
        return self._initial_run

    @property
    def subscriptions(self) -> list[Subscription]:
        """Snapshot of the live subscriptions in configuration order."""
        with self._lock:
            return list(self._subscriptions)

    def list_feeds(self) -> list[FeedConfig]:
        """Configurations of the live subscriptions."""
        return [s.config for s in self.subscriptions]

    def get_subscription(self, name: str) -> Optional[Subscription]:
        """Find a subscription by feed name."""
        with self._lock:
            for subscription in self._subscriptions:
                if subscription.name == name:
                    return subscription
        return None

    def add_subscription(self, feed: FeedConfig) -> bool:
        """Subscribe to a feed. It is polled from the next cycle on.

        Returns:
            False if a subscription with the same name exists
        """
        with self._lock:
            if any(s.name == feed.name for s in self._subscriptions):
                logger.info(f"Feed already exists: {feed.name}")
                return False
            self._subscriptions.append(self._new_subscription(feed))

        logger.info(f"Feed added: {feed.name} ({feed.url})")
        return True

    def remove_subscription(self, name: str) -> bool:
        """Drop the subscription with the given name, along with its seen entries.

        Returns:
            True if a subscription was removed
        """
        with self._lock:
            remaining = [s for s in self._subscriptions if s.name != name]
            removed = len(remaining) != len(self._subscriptions)
            self._subscriptions = remaining

        if removed:
            logger.info(f"Feed deleted: {name}")
        return removed

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    def run_cycle(self) -> int:
        """Fetch all subscriptions and enqueue their new entries.

        Returns:
            Number of entries enqueued for delivery
        """
        with self._cycle_lock:
            initial_run = self._initial_run
            self._initial_run = False

            # Iterate a snapshot so commands can change the list meanwhile
            subscriptions = self.subscriptions
            start_time = time.monotonic()

            enqueued = 0
            for subscription in subscriptions:
                enqueued += self._poll_subscription(subscription, initial_run)

            self.stats.cycles += 1
            self.stats.last_cycle_at = datetime.now()
            self.stats.last_cycle_seconds = time.monotonic() - start_time

            logger.info(
                f"Poll cycle finished: {len(subscriptions)} feeds, {enqueued} entries queued"
                f"{' (initial run)' if initial_run else ''} in {self.stats.last_cycle_seconds:.2f}s"
            )
            return enqueued

    def _poll_subscription(self, subscription: Subscription, initial_run: bool) -> int:
        """Fetch one subscription and enqueue what should be posted."""
        result = subscription.fetch_updates()

        if not result.success:
            self.stats.fetch_errors += 1
            logger.warning(f"Failed to fetch {subscription.config.label}: {result.error}")
            return 0

        self.stats.entries_fetched += result.entries_count
        log = logger.bind(feed=subscription.name, count=result.entries_count)

        queued = 0
        for entry in result.entries:
            already_shown = subscription.shown(entry)
            # Record before deciding, so suppressed entries never come back
            subscription.record(entry)

            if initial_run and self.skip_initial:
                log.debug(f"Skipping initial run: {entry.title!r}")
                continue
            if initial_run and queued + 1 > self.show_initial:
                log.debug(f"Skipping initial run: {entry.title!r}")
                continue
            if already_shown:
                log.debug(f"Skipping already published: {entry.title!r}")
                continue

            self.queue.put(DeliveryItem(entry=entry, feed=subscription.config))
            queued += 1

        self.stats.enqueued += queued
        return queued

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def deliver(self, item: DeliveryItem) -> bool:
        """Format and post one entry.

        Returns:
            True if the webhook accepted the message
        """
        try:
            message = self.formatter(item.entry, item.feed, self.config)
            self.publisher.publish(message)
        except PublishError as e:
            self.stats.publish_errors += 1
            logger.error(f"Failed to post {item.entry.title!r} from {item.feed.label}: {e}")
            return False
        except Exception as e:
            self.stats.publish_errors += 1
            logger.exception(f"Unexpected error delivering {item.entry.title!r}: {e}")
            return False

        self.stats.delivered += 1
        logger.debug(f"Posted {item.entry.title!r} from {item.feed.label}")
        return True

    def deliver_pending(self) -> int:
        """Deliver everything currently queued in the calling thread.

        Returns:
            Number of entries posted successfully
        """
        delivered = 0
        while True:
            try:
                item = self.queue.get_nowait()
            except queue.Empty:
                return delivered

            try:
                if item is not None and self.deliver(item):
                    delivered += 1
            finally:
                self.queue.task_done()

    def _delivery_loop(self) -> None:
        """Consume the queue until the stop marker arrives."""
        while True:
            item = self.queue.get()
            try:
                if item is None:
                    return
                self.deliver(item)
            finally:
                self.queue.task_done()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, run_immediately: bool = True) -> None:
        """Start the delivery thread and the poll timer.

        Args:
            run_immediately: Poll once right away instead of waiting one interval
        """
        if self._worker is not None and self._worker.is_alive():
            logger.warning("Dispatcher is already running")
            return

        self._worker = threading.Thread(
            target=self._delivery_loop,
            name="mattermost-delivery",
            daemon=True,
        )
        self._worker.start()
        self.scheduler.start(run_immediately=run_immediately)

        logger.info(f"Ready to fetch {len(self.subscriptions)} feeds every {self.config.interval}")

    def stop(self, wait: bool = True) -> None:
        """Stop polling, then let the delivery thread finish the queue.

        Args:
            wait: Whether to wait for the running cycle and queued deliveries
        """
        if self.scheduler.is_running():
            self.scheduler.stop(wait=wait)

        if self._worker is not None and self._worker.is_alive():
            self.queue.put(None)
            if wait:
                self._worker.join()
        self._worker = None

    def is_running(self) -> bool:
        """Check if the timer is running."""
        return self.scheduler.is_running()

    def get_stats(self) -> DispatchStats:
        """Get poll and delivery counters."""
        return self.stats

    def trigger(self) -> bool:
        """Request an extra poll cycle now.

        Returns:
            True if the cycle was scheduled
        """
        return self.scheduler.trigger_now()


def create_dispatcher(config: Optional[Config] = None) -> FeedDispatcher:
    """Create a FeedDispatcher with the default parser, formatter and publisher.

    Args:
        config: Application config (defaults to the global config)

    Returns:
        Configured FeedDispatcher instance
    """
    return FeedDispatcher(config=config)
