"""
Bounded record of entries already shown for one subscription.
"""

from collections import deque
from typing import Iterator

from mattermost_rss.core.identity import Identifiable, entries_equal
from mattermost_rss.models.entry import EntryIdentity

SEEN_CAPACITY = 200
SEEN_TRIM_TO = 190


class SeenSet:
    """Most-recent-first list of entry identities.

    Equality between entries has fallback rules, so identities cannot be
    hashed; lookups scan the bounded window instead. When the record grows
    past ``capacity`` it is trimmed back to the ``trim_to`` newest items.
    """

    def __init__(self, capacity: int = SEEN_CAPACITY, trim_to: int = SEEN_TRIM_TO):
        if not 0 < trim_to <= capacity:
            raise ValueError(f"trim_to must be in 1..{capacity}, got {trim_to}")

        self.capacity = capacity
        self.trim_to = trim_to
        self._records: deque[EntryIdentity] = deque()

    def mark_seen(self, entry: Identifiable) -> None:
        """Record an entry as the most recently seen one."""
        self._records.appendleft(EntryIdentity(entry.guid, entry.title, entry.link))

        if len(self._records) > self.capacity:
            while len(self._records) > self.trim_to:
                self._records.pop()

    def was_seen(self, entry: Identifiable) -> bool:
        """Check whether an equal entry has been recorded."""
        return any(entries_equal(record, entry) for record in self._records)

    def clear(self) -> None:
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[EntryIdentity]:
        return iter(self._records)
