"""
Exception hierarchy for mattermost-rss-reader.
"""

from typing import Optional


class MattermostRSSError(Exception):
    """Base class for all application errors."""


class FetchError(MattermostRSSError):
    """A feed could not be retrieved or parsed.

    Recovered by the dispatch loop: the subscription simply contributes no
    entries for the current cycle.
    """

    def __init__(self, url: str, reason: str, status_code: Optional[int] = None):
        self.url = url
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"{reason} ({url})")


class PublishError(MattermostRSSError):
    """A message could not be delivered to the webhook."""

    def __init__(self, reason: str, status_code: Optional[int] = None):
        self.reason = reason
        self.status_code = status_code
        super().__init__(reason)


class ConfigError(MattermostRSSError):
    """Configuration could not be loaded. Fatal at startup only."""
