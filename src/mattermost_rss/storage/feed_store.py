"""
JSON feed file storage.

The feed list may live in its own file so that changes made through slash
commands survive restarts without rewriting the main configuration.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Iterable, Optional

from pydantic import ValidationError

from mattermost_rss.exceptions import ConfigError
from mattermost_rss.logger import get_logger
from mattermost_rss.models.feed import FeedConfig, filter_feed_definitions

logger = get_logger(__name__)


class FeedStore:
    """Load and save the feed list as a JSON array."""

    def __init__(self, path: Optional[str]):
        """Initialize feed store.

        Args:
            path: Path to the feed file, or None if feeds are not persisted
        """
        self.path = Path(path) if path else None

    def load(self) -> Optional[list[FeedConfig]]:
        """Read feeds from the feed file.

        Returns:
            List of feeds, or None if the file could not be read

        Raises:
            ConfigError: If the file content is not a valid feed list
        """
        if self.path is None:
            return None

        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as e:
            logger.error(f"Error reading feed file {self.path}: {e}")
            return None

        try:
            data = json.loads(raw) if raw.strip() else []
        except ValueError as e:
            raise ConfigError(f"Error reading feed file {self.path}: {e}") from e

        if not isinstance(data, list):
            raise ConfigError(f"Feed file {self.path} must contain a JSON array")

        try:
            feeds = [FeedConfig.model_validate(item) for item in filter_feed_definitions(data)]
        except ValidationError as e:
            raise ConfigError(f"Invalid feed in {self.path}: {e}") from e

        logger.debug(f"Loaded {len(feeds)} feeds from {self.path}")
        return feeds

    def save(self, feeds: Iterable[FeedConfig]) -> bool:
        """Atomically write the feed list.

        Args:
            feeds: Feeds to persist

        Returns:
            True if the file was written
        """
        if self.path is None:
            logger.warning("Not saving feeds, configure `feed_file`.")
            return False

        data = [feed.model_dump() for feed in feeds]
        tmp_name = None

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            # Temp file in the target directory so the rename stays on one filesystem
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.path.parent,
                prefix=".mattermost-rss-",
                suffix=".json",
                delete=False,
            ) as tmp:
                tmp_name = tmp.name
                json.dump(data, tmp, indent=2, ensure_ascii=False)
            os.replace(tmp_name, self.path)
        except OSError as e:
            logger.error(f"Error writing feed file {self.path}: {e}")
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            return False

        logger.info(f"Saved {len(data)} feeds to {self.path}")
        return True
