"""
Serializer functions for converting runtime objects to dictionaries.
"""

from datetime import datetime
from typing import Any, Optional

from mattermost_rss.core.dispatcher import DispatchStats
from mattermost_rss.core.scheduler import JobStatus
from mattermost_rss.models.feed import FeedConfig


def serialize_datetime(dt: Optional[datetime]) -> Optional[str]:
    """Convert datetime to ISO format string."""
    return dt.isoformat() if dt else None


def feed_to_dict(feed: FeedConfig) -> dict:
    """Convert a feed configuration to a dictionary."""
    return feed.model_dump()


def stats_to_dict(stats: DispatchStats) -> dict:
    """Convert dispatch statistics to a dictionary."""
    return {
        "cycles": stats.cycles,
        "fetch_errors": stats.fetch_errors,
        "entries_fetched": stats.entries_fetched,
        "enqueued": stats.enqueued,
        "delivered": stats.delivered,
        "publish_errors": stats.publish_errors,
        "last_cycle_at": serialize_datetime(stats.last_cycle_at),
        "last_cycle_seconds": round(stats.last_cycle_seconds, 3),
    }


def job_status_to_dict(status: Optional[JobStatus]) -> Optional[dict]:
    """Convert the poll job status to a dictionary."""
    if status is None:
        return None

    return {
        "job_id": status.job_id,
        "name": status.name,
        "next_run_time": serialize_datetime(status.next_run_time),
        "last_run_time": serialize_datetime(status.last_run_time),
        "is_active": status.is_active,
        "trigger": status.trigger,
        "runs_count": status.runs_count,
        "errors_count": status.errors_count,
        "skipped_count": status.skipped_count,
        "last_error": status.last_error,
    }


def api_response(
    success: bool = True,
    data: Any = None,
    message: str = None,
    error: str = None,
    status: int = 200
) -> tuple:
    """Standard API response format.

    Args:
        success: Whether the request was successful
        data: Response data
        message: Success message
        error: Error message
        status: HTTP status code

    Returns:
        Flask response with JSON data
    """
    from flask import jsonify

    response_data = {
        "success": success,
        "data": data,
        "message": message,
        "error": error,
    }
    return jsonify(response_data), status
