"""HTTP endpoints: slash commands, health and dispatch control."""

from mattermost_rss.web.app import create_app

__all__ = ["create_app"]
