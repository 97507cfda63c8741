"""
Feed entry data model.

Entries are decoupled from the feedparser result objects: the parser copies
exactly the fields needed for deduplication and formatting.
"""

from dataclasses import dataclass
from typing import NamedTuple, Optional


class EntryIdentity(NamedTuple):
    """The fields used to decide whether two entries are the same."""

    guid: str
    title: str
    link: str


@dataclass(frozen=True)
class FeedEntry:
    """A single syndication item as returned by the feed parser."""

    guid: str = ""
    title: str = ""
    link: str = ""
    description: str = ""
    content: str = ""
    image: Optional[str] = None
    authors: tuple[str, ...] = ()

    @property
    def author(self) -> Optional[str]:
        """First author name, if any."""
        return self.authors[0] if self.authors else None

    def __repr__(self) -> str:
        return f"<FeedEntry(guid='{self.guid}', title='{self.title}', link='{self.link}')>"
