"""
Dispatch loop API blueprint.

Reports poll/delivery statistics and triggers an extra poll cycle.
"""

from flask import Blueprint

from mattermost_rss.core.dispatcher import FeedDispatcher
from mattermost_rss.web.serializers import (
    api_response,
    feed_to_dict,
    job_status_to_dict,
    stats_to_dict,
)


class DispatchBlueprint:
    """Blueprint for dispatch loop operations."""

    def __init__(self, dispatcher: FeedDispatcher):
        """Initialize the dispatch blueprint.

        Args:
            dispatcher: The running dispatcher
        """
        self.dispatcher = dispatcher
        self.blueprint = Blueprint("dispatch", __name__, url_prefix="/api/dispatch")
        self._register_routes()

    def _register_routes(self):
        """Register all dispatch routes."""
        self.blueprint.add_url_rule("/status", view_func=self._status, methods=["GET"])
        self.blueprint.add_url_rule("/feeds", view_func=self._feeds, methods=["GET"])
        self.blueprint.add_url_rule("/fetch", view_func=self._fetch, methods=["POST"])

    def _status(self):
        """Get dispatch loop status."""
        dispatcher = self.dispatcher

        return api_response(
            success=True,
            data={
                "running": dispatcher.is_running(),
                "initial_run": dispatcher.initial_run,
                "subscriptions": len(dispatcher.subscriptions),
                "queued": dispatcher.queue.qsize(),
                "interval_seconds": dispatcher.config.interval_seconds,
                "stats": stats_to_dict(dispatcher.get_stats()),
                "job": job_status_to_dict(dispatcher.scheduler.get_status()),
            },
        )

    def _feeds(self):
        """List the live subscriptions."""
        return api_response(
            success=True,
            data=[feed_to_dict(feed) for feed in self.dispatcher.list_feeds()],
        )

    def _fetch(self):
        """Trigger a poll cycle now."""
        if not self.dispatcher.trigger():
            return api_response(success=False, error="Dispatcher is not running", status=409)
        return api_response(success=True, message="Poll cycle scheduled")
