"""Unit tests for the dispatch loop."""

from unittest.mock import Mock

import pytest

from mattermost_rss.core.dispatcher import (
    DeliveryItem,
    DispatchStats,
    FeedDispatcher,
    create_dispatcher,
)
from mattermost_rss.models.feed import FeedConfig

from conftest import make_entry


def make_dispatcher(config, fake_source, fake_publisher, **updates):
    """Create a dispatcher over fakes with config overrides."""
    if updates:
        config = config.model_copy(update=updates)
    return FeedDispatcher(
        config=config,
        publisher=fake_publisher,
        parser_factory=lambda: fake_source,
    )


def drain(dispatcher):
    """Take all queued items without delivering them."""
    items = []
    while not dispatcher.queue.empty():
        items.append(dispatcher.queue.get_nowait())
        dispatcher.queue.task_done()
    return items


def three_feeds():
    """Three feeds with distinct names, URLs and channels."""
    return [
        FeedConfig(name=f"feed-{n}", url=f"https://example.com/{n}.xml", channel=f"chan-{n}")
        for n in range(3)
    ]


class TestDispatchStats:
    """Tests for DispatchStats dataclass."""

    def test_creation(self):
        """Test default counters."""
        stats = DispatchStats()

        assert stats.cycles == 0
        assert stats.enqueued == 0
        assert stats.delivered == 0
        assert stats.last_cycle_at is None


class TestSubscriptionManagement:
    """Tests for adding, removing and listing subscriptions."""

    def test_init_from_config(self, config, fake_source, fake_publisher, feed_config):
        """Test subscriptions are built from the configured feeds."""
        dispatcher = make_dispatcher(config, fake_source, fake_publisher)

        assert dispatcher.list_feeds() == [feed_config]
        assert dispatcher.initial_run is True
        assert dispatcher.queue.maxsize == 200

    def test_add_subscription(self, config, fake_source, fake_publisher):
        """Test adding a feed."""
        dispatcher = make_dispatcher(config, fake_source, fake_publisher)
        feed = FeedConfig(name="other", url="https://other.example.com/rss")

        assert dispatcher.add_subscription(feed) is True
        assert [f.name for f in dispatcher.list_feeds()] == ["example", "other"]
        assert dispatcher.get_subscription("other").config == feed

    def test_add_duplicate_name(self, config, fake_source, fake_publisher):
        """Test a second feed with an existing name is rejected."""
        dispatcher = make_dispatcher(config, fake_source, fake_publisher)
        feed = FeedConfig(name="example", url="https://other.example.com/rss")

        assert dispatcher.add_subscription(feed) is False
        assert len(dispatcher.subscriptions) == 1

    def test_remove_subscription(self, config, fake_source, fake_publisher):
        """Test removing a feed."""
        dispatcher = make_dispatcher(config, fake_source, fake_publisher)

        assert dispatcher.remove_subscription("example") is True
        assert dispatcher.list_feeds() == []
        assert dispatcher.get_subscription("example") is None

    def test_remove_unknown(self, config, fake_source, fake_publisher):
        """Test removing a feed that does not exist."""
        dispatcher = make_dispatcher(config, fake_source, fake_publisher)

        assert dispatcher.remove_subscription("missing") is False
        assert len(dispatcher.subscriptions) == 1

    def test_subscriptions_is_snapshot(self, config, fake_source, fake_publisher):
        """Test the returned list is not the live list."""
        dispatcher = make_dispatcher(config, fake_source, fake_publisher)

        snapshot = dispatcher.subscriptions
        snapshot.clear()

        assert len(dispatcher.subscriptions) == 1


class TestRunCycle:
    """Tests for the polling transition."""

    def test_skip_initial(self, config, fake_source, fake_publisher, feed_config):
        """Test nothing is queued on the first cycle with skip_initial, but all is recorded."""
        dispatcher = make_dispatcher(config, fake_source, fake_publisher, skip_initial=True, show_initial=0)
        fake_source.set_entries(feed_config.url, [make_entry(n) for n in range(1, 4)])

        assert dispatcher.run_cycle() == 0
        assert dispatcher.queue.qsize() == 0
        assert len(dispatcher.get_subscription("example").seen) == 3
        assert dispatcher.initial_run is False

    def test_regenerated_guids_not_requeued(self, config, fake_source, fake_publisher, feed_config):
        """Test refetched entries with new GUIDs but same link and title are not queued."""
        dispatcher = make_dispatcher(config, fake_source, fake_publisher, skip_initial=True)
        fake_source.set_entries(feed_config.url, [make_entry(n) for n in range(1, 4)])
        dispatcher.run_cycle()

        fake_source.set_entries(
            feed_config.url, [make_entry(n, guid=f"new-{n}") for n in range(1, 4)]
        )

        assert dispatcher.run_cycle() == 0
        assert dispatcher.queue.qsize() == 0

    def test_new_entry_on_second_cycle(self, config, fake_source, fake_publisher, feed_config):
        """Test only the genuinely new entry is queued, with its feed configuration."""
        dispatcher = make_dispatcher(config, fake_source, fake_publisher, skip_initial=True)
        fake_source.set_entries(feed_config.url, [make_entry(n) for n in range(1, 4)])
        dispatcher.run_cycle()

        fake_source.set_entries(
            feed_config.url,
            [make_entry(4)] + [make_entry(n, guid=f"new-{n}") for n in range(1, 4)],
        )

        assert dispatcher.run_cycle() == 1
        [item] = drain(dispatcher)
        assert item.entry == make_entry(4)
        assert item.feed == feed_config
        assert item.feed.channel == "news"

    def test_show_initial(self, config, fake_source, fake_publisher, feed_config):
        """Test the first show_initial entries are queued on the first cycle."""
        dispatcher = make_dispatcher(config, fake_source, fake_publisher, show_initial=2)
        fake_source.set_entries(feed_config.url, [make_entry(n) for n in range(1, 6)])

        assert dispatcher.run_cycle() == 2
        assert [item.entry.guid for item in drain(dispatcher)] == ["guid-1", "guid-2"]
        subscription = dispatcher.get_subscription("example")
        assert len(subscription.seen) == 5
        for n in range(1, 6):
            assert subscription.shown(make_entry(n)) is True

    def test_show_initial_zero_suppresses_first_cycle(self, config, fake_source, fake_publisher, feed_config):
        """Test show_initial=0 posts nothing on the first cycle."""
        dispatcher = make_dispatcher(config, fake_source, fake_publisher, show_initial=0)
        fake_source.set_entries(feed_config.url, [make_entry(1), make_entry(2)])

        assert dispatcher.run_cycle() == 0

    def test_show_initial_per_feed(self, config, fake_source, fake_publisher):
        """Test the initial allowance applies to each feed separately."""
        dispatcher = make_dispatcher(config, fake_source, fake_publisher, feeds=three_feeds(), show_initial=1)
        for feed in dispatcher.list_feeds():
            fake_source.set_entries(feed.url, [make_entry(1), make_entry(2)])

        assert dispatcher.run_cycle() == 3

    def test_later_cycles_queue_all_new(self, config, fake_source, fake_publisher, feed_config):
        """Test initial suppression only applies to the first cycle."""
        dispatcher = make_dispatcher(config, fake_source, fake_publisher, skip_initial=True)
        dispatcher.run_cycle()

        fake_source.set_entries(feed_config.url, [make_entry(n) for n in range(1, 6)])

        assert dispatcher.run_cycle() == 5
        assert dispatcher.stats.enqueued == 5
        assert dispatcher.stats.cycles == 2

    def test_duplicates_within_one_fetch(self, config, fake_source, fake_publisher, feed_config):
        """Test an entry listed twice in one document is queued once."""
        dispatcher = make_dispatcher(config, fake_source, fake_publisher, skip_initial=True)
        dispatcher.run_cycle()

        fake_source.set_entries(feed_config.url, [make_entry(1), make_entry(1)])

        assert dispatcher.run_cycle() == 1

    def test_feed_order_fifo(self, config, fake_source, fake_publisher):
        """Test items are queued in subscription order, then feed order."""
        dispatcher = make_dispatcher(config, fake_source, fake_publisher, feeds=three_feeds(), skip_initial=True)
        dispatcher.run_cycle()
        for n, feed in enumerate(dispatcher.list_feeds()):
            fake_source.set_entries(feed.url, [make_entry(10 * n + 1), make_entry(10 * n + 2)])

        dispatcher.run_cycle()

        items = drain(dispatcher)
        assert [(i.feed.name, i.entry.guid) for i in items] == [
            ("feed-0", "guid-1"),
            ("feed-0", "guid-2"),
            ("feed-1", "guid-11"),
            ("feed-1", "guid-12"),
            ("feed-2", "guid-21"),
            ("feed-2", "guid-22"),
        ]

    def test_fetch_failure_isolated(self, config, fake_source, fake_publisher):
        """Test one failing feed does not stop the others in the same cycle."""
        dispatcher = make_dispatcher(config, fake_source, fake_publisher, feeds=three_feeds(), skip_initial=True)
        dispatcher.run_cycle()
        feeds = dispatcher.list_feeds()
        for feed in feeds:
            fake_source.set_entries(feed.url, [make_entry(1)])
        fake_source.fail(feeds[1].url)

        assert dispatcher.run_cycle() == 2
        assert [i.feed.name for i in drain(dispatcher)] == ["feed-0", "feed-2"]
        assert dispatcher.stats.fetch_errors == 1
        assert len(dispatcher.get_subscription("feed-1").seen) == 0

    def test_added_subscription_polled_next_cycle(self, config, fake_source, fake_publisher):
        """Test a feed added at runtime is polled by the next cycle."""
        dispatcher = make_dispatcher(config, fake_source, fake_publisher)
        dispatcher.run_cycle()
        feed = FeedConfig(name="other", url="https://other.example.com/rss")
        fake_source.set_entries(feed.url, [make_entry(1)])

        dispatcher.add_subscription(feed)
        fake_source.calls.clear()

        assert dispatcher.run_cycle() == 1
        assert feed.url in fake_source.calls

    def test_removed_subscription_not_polled(self, config, fake_source, fake_publisher, feed_config):
        """Test a removed feed is no longer polled."""
        dispatcher = make_dispatcher(config, fake_source, fake_publisher)
        dispatcher.run_cycle()
        dispatcher.remove_subscription("example")
        fake_source.calls.clear()

        dispatcher.run_cycle()

        assert fake_source.calls == []

    def test_stats_updated(self, config, fake_source, fake_publisher, feed_config):
        """Test cycle statistics."""
        dispatcher = make_dispatcher(config, fake_source, fake_publisher, show_initial=5)
        fake_source.set_entries(feed_config.url, [make_entry(1), make_entry(2)])

        dispatcher.run_cycle()

        stats = dispatcher.get_stats()
        assert stats.cycles == 1
        assert stats.entries_fetched == 2
        assert stats.enqueued == 2
        assert stats.last_cycle_at is not None


class TestDelivery:
    """Tests for the delivery transition."""

    def test_deliver(self, config, fake_source, fake_publisher, feed_config):
        """Test one item is formatted and published."""
        dispatcher = make_dispatcher(config, fake_source, fake_publisher)

        assert dispatcher.deliver(DeliveryItem(entry=make_entry(1), feed=feed_config)) is True
        [message] = fake_publisher.messages
        assert message.channel == "news"
        assert message.username == "example-bot"
        assert message.text == "[Entry 1](https://example.com/entries/1)"
        assert dispatcher.stats.delivered == 1

    def test_deliver_uses_formatter(self, config, fake_source, fake_publisher, feed_config):
        """Test a custom formatter is called with entry, feed and config."""
        formatter = Mock(return_value="formatted")
        publisher = Mock()
        dispatcher = FeedDispatcher(config=config, publisher=publisher, formatter=formatter,
                                    parser_factory=lambda: fake_source)
        entry = make_entry(1)

        dispatcher.deliver(DeliveryItem(entry=entry, feed=feed_config))

        formatter.assert_called_once_with(entry, feed_config, config)
        publisher.publish.assert_called_once_with("formatted")

    def test_publish_failure_isolated(self, config, fake_source, fake_publisher, feed_config):
        """Test a failed post does not stop later items."""
        dispatcher = make_dispatcher(config, fake_source, fake_publisher, skip_initial=True)
        dispatcher.run_cycle()
        fake_source.set_entries(feed_config.url, [make_entry(n) for n in range(1, 4)])
        dispatcher.run_cycle()
        fake_publisher.fail_containing.add("Entry 2")

        assert dispatcher.deliver_pending() == 2
        assert [m.text.split("]")[0] for m in fake_publisher.messages] == ["[Entry 1", "[Entry 3"]
        assert dispatcher.stats.publish_errors == 1
        assert dispatcher.queue.qsize() == 0

    def test_formatter_failure_isolated(self, config, fake_source, feed_config):
        """Test an unexpected formatter error does not stop draining the queue."""
        publisher = Mock()
        formatter = Mock(side_effect=[RuntimeError("boom"), "second", "third"])
        dispatcher = FeedDispatcher(config=config, publisher=publisher, formatter=formatter,
                                    parser_factory=lambda: fake_source)
        for n in range(1, 4):
            dispatcher.queue.put(DeliveryItem(entry=make_entry(n), feed=feed_config))

        assert dispatcher.deliver_pending() == 2
        assert [c.args[0] for c in publisher.publish.call_args_list] == ["second", "third"]
        assert dispatcher.stats.publish_errors == 1
        assert dispatcher.stats.delivered == 2
        assert dispatcher.queue.qsize() == 0

    def test_failed_entry_not_redelivered(self, config, fake_source, fake_publisher, feed_config):
        """Test an entry whose post failed is not queued again."""
        dispatcher = make_dispatcher(config, fake_source, fake_publisher, skip_initial=True)
        dispatcher.run_cycle()
        fake_source.set_entries(feed_config.url, [make_entry(1)])
        dispatcher.run_cycle()
        fake_publisher.fail_containing.add("Entry 1")
        dispatcher.deliver_pending()

        assert dispatcher.run_cycle() == 0

    def test_delivery_thread(self, config, fake_source, fake_publisher, feed_config):
        """Test the delivery thread posts queued items in order."""
        dispatcher = make_dispatcher(config, fake_source, fake_publisher, show_initial=3)
        fake_source.set_entries(feed_config.url, [make_entry(n) for n in range(1, 4)])

        dispatcher.start(run_immediately=False)
        try:
            dispatcher.run_cycle()
            dispatcher.queue.join()
        finally:
            dispatcher.stop()

        assert [m.text.split("]")[0] for m in fake_publisher.messages] == [
            "[Entry 1",
            "[Entry 2",
            "[Entry 3",
        ]
        assert dispatcher.is_running() is False

    def test_delivery_thread_survives_unexpected_error(self, config, fake_source, feed_config):
        """Test an unexpected formatter error does not kill the delivery thread."""
        publisher = Mock()
        formatter = Mock(side_effect=[RuntimeError("boom"), "second"])
        dispatcher = FeedDispatcher(config=config, publisher=publisher, formatter=formatter,
                                    parser_factory=lambda: fake_source)

        dispatcher.start(run_immediately=False)
        try:
            dispatcher.queue.put(DeliveryItem(entry=make_entry(1), feed=feed_config))
            dispatcher.queue.put(DeliveryItem(entry=make_entry(2), feed=feed_config))
            dispatcher.queue.join()
        finally:
            dispatcher.stop()

        publisher.publish.assert_called_once_with("second")
        assert dispatcher.stats.publish_errors == 1


class TestLifecycle:
    """Tests for start, stop and trigger."""

    def test_trigger_when_stopped(self, config, fake_source, fake_publisher):
        """Test triggering requires a running dispatcher."""
        dispatcher = make_dispatcher(config, fake_source, fake_publisher)

        assert dispatcher.trigger() is False

    def test_start_stop(self, config, fake_source, fake_publisher):
        """Test starting and stopping."""
        dispatcher = make_dispatcher(config, fake_source, fake_publisher)

        dispatcher.start(run_immediately=False)
        assert dispatcher.is_running() is True
        assert dispatcher.trigger() is True

        dispatcher.stop()
        assert dispatcher.is_running() is False

    def test_create_dispatcher(self, config):
        """Test factory uses the given config."""
        dispatcher = create_dispatcher(config)

        assert isinstance(dispatcher, FeedDispatcher)
        assert dispatcher.config is config
        assert len(dispatcher.subscriptions) == 1
