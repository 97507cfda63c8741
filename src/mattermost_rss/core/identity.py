"""
Entry identity: decides whether two entries of the same feed are the same item.

Feeds are unreliable identifiers. The GUID is trusted first, Link+Title
second and Title alone last.
"""

from typing import Protocol


class Identifiable(Protocol):
    """Anything carrying the identity fields of an entry."""

    guid: str
    title: str
    link: str


def entries_equal(a: Identifiable, b: Identifiable) -> bool:
    """Compare two feed entries.

    Args:
        a: First entry (FeedEntry or EntryIdentity)
        b: Second entry (FeedEntry or EntryIdentity)

    Returns:
        True if both describe the same item
    """
    if a.guid and b.guid:
        if a.guid == b.guid:
            # Same GUID with a different link: the feed reused the GUID
            return a.link == b.link
        # Some feeds regenerate GUIDs on every fetch
        return a.link == b.link and a.title == b.title

    if a.link and b.link:
        return a.link == b.link and a.title == b.title

    return a.title == b.title
