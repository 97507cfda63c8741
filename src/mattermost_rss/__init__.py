"""
Mattermost RSS Reader - Relay syndication feeds into Mattermost channels.

This package polls a set of RSS/Atom feeds, decides which entries are new
and posts them to a Mattermost incoming webhook. A slash-command endpoint
lets operators add, remove and list subscriptions at runtime.
"""

__version__ = "0.1.0"
