"""
Slash command handling for managing subscriptions from Mattermost.

See https://docs.mattermost.com/developer/slash-commands.html for the
request format.
"""

import re
from typing import Optional

from pydantic import ValidationError

from mattermost_rss.core.dispatcher import FeedDispatcher
from mattermost_rss.logger import get_logger
from mattermost_rss.models.feed import FeedConfig
from mattermost_rss.models.message import MattermostMessage
from mattermost_rss.storage.feed_store import FeedStore

logger = get_logger(__name__)

ADD_USAGE = "Usage: add <name> <url> [iconURL] [options]*"
REMOVE_USAGE = "Usage: remove <name>"

_WHITESPACE = re.compile(r"\s+")
_TRUE_VALUES = ("t", "true", "yes", "detailed")
_OPTION_KEYS = ("icon", "channel", "detailed", "detail", "user", "username")


class CommandHandler:
    """Executes ``add``, ``remove`` and ``list`` commands against the dispatcher."""

    def __init__(self, dispatcher: FeedDispatcher, feed_store: Optional[FeedStore] = None):
        """Initialize command handler.

        Args:
            dispatcher: Owner of the live subscription list
            feed_store: Where to persist changes (not persisted if omitted)
        """
        self.dispatcher = dispatcher
        self.feed_store = feed_store or FeedStore(None)

    def handle(self, text: str, user_name: str = "", channel_name: str = "") -> MattermostMessage:
        """Run a command.

        Args:
            text: Command text after the slash trigger
            user_name: Invoking user
            channel_name: Channel the command was issued in

        Returns:
            Response message for the invoking user
        """
        tokens = _WHITESPACE.split((text or "").strip())
        action, args = tokens[0], tokens[1:]
        log = logger.bind(user=user_name, channel=channel_name)

        if action == "add":
            reply = self._add(args, channel_name)
        elif action == "remove":
            reply = self._remove(args)
        elif action == "list":
            reply = self._list()
        else:
            reply = "Unknown command"

        log.info(f"Command {action!r}: {reply.splitlines()[0]}")
        return MattermostMessage(text=reply)

    def _add(self, args: list[str], channel: str) -> str:
        if len(args) < 2:
            return ADD_USAGE

        name, url = args[0], args[1]
        extra = args[2:]
        icon_url = ""
        if extra and extra[0].partition("=")[0] not in _OPTION_KEYS:
            icon_url = extra.pop(0)
        detailed = False
        username = ""

        for option in extra:
            key, sep, value = option.partition("=")
            if not sep:
                continue
            if key == "icon":
                icon_url = value
            elif key == "channel":
                channel = value
            elif key in ("detailed", "detail"):
                detailed = value in _TRUE_VALUES
            elif key in ("user", "username"):
                username = value

        try:
            feed = FeedConfig(
                name=name,
                url=url,
                icon_url=icon_url,
                channel=channel,
                detailed=detailed,
                username=username,
            )
        except ValidationError as e:
            logger.warning(f"Rejected feed {name!r}: {e}")
            return f"Invalid feed: {e.errors()[0]['msg']}"

        if not self.dispatcher.add_subscription(feed):
            return "Feed already exists, delete it first."

        self.feed_store.save(self.dispatcher.list_feeds())
        return "Added feed."

    def _remove(self, args: list[str]) -> str:
        if not args:
            return REMOVE_USAGE

        if not self.dispatcher.remove_subscription(args[0]):
            return "Feed not found."

        self.feed_store.save(self.dispatcher.list_feeds())
        return "Removed feed."

    def _list(self) -> str:
        feeds = self.dispatcher.list_feeds()
        if not feeds:
            return "No feeds configured."
        return "".join(f"* [{f.channel}] {f.name} ({f.url})\n" for f in feeds)
