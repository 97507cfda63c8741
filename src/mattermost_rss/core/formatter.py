"""
Formats feed entries as Mattermost messages.
"""

from typing import Optional

from bs4 import BeautifulSoup

from mattermost_rss.config import Config, get_config
from mattermost_rss.models.entry import FeedEntry
from mattermost_rss.models.feed import FeedConfig
from mattermost_rss.models.message import MattermostAttachment, MattermostMessage


def sanitize(text: Optional[str]) -> str:
    """Strip all HTML markup, keeping the text content.

    Args:
        text: Text that may contain HTML

    Returns:
        Plain text
    """
    if not text:
        return ""

    soup = BeautifulSoup(text, "html.parser")

    for element in soup(["script", "style", "noscript"]):
        element.decompose()

    return soup.get_text().strip()


def simple_message(entry: FeedEntry, feed: FeedConfig) -> MattermostMessage:
    """Markdown link to the entry, followed by its image URL if there is one."""
    if entry.image:
        text = f"[{entry.title}]({entry.link})\n{entry.image}"
    else:
        text = f"[{entry.title}]({entry.link})"

    return MattermostMessage(
        channel=feed.channel,
        username=feed.username,
        icon_url=feed.icon_url,
        text=sanitize(text),
    )


def detailed_message(entry: FeedEntry, feed: FeedConfig) -> MattermostMessage:
    """Attachment with title, summary, author and thumbnail."""
    title = sanitize(entry.title)

    attachment = MattermostAttachment(
        fallback=title,
        title=title,
        title_link=entry.link,
        text=sanitize(entry.description) or sanitize(entry.content),
        author_name=entry.author or "",
        thumb_url=entry.image or "",
    )

    return MattermostMessage(
        channel=feed.channel,
        username=feed.username,
        icon_url=feed.icon_url,
        attachments=[attachment],
    )


def format_message(
    entry: FeedEntry,
    feed: FeedConfig,
    config: Optional[Config] = None,
) -> MattermostMessage:
    """Build the message posted for an entry.

    Args:
        entry: Entry to post
        feed: Configuration of the feed the entry came from
        config: Application config supplying defaults

    Returns:
        Message with channel, username and icon resolved
    """
    config = config or get_config()

    if feed.detailed or config.detailed:
        message = detailed_message(entry, feed)
    else:
        message = simple_message(entry, feed)

    return message.model_copy(update={
        "channel": message.channel or config.channel,
        "username": message.username or config.username,
        "icon_url": message.icon_url or config.icon_url,
    })
