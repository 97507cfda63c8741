"""
Mattermost incoming-webhook publisher.
"""

from typing import Optional

import httpx

from mattermost_rss.config import Config, get_config
from mattermost_rss.exceptions import PublishError
from mattermost_rss.logger import get_logger
from mattermost_rss.models.message import MattermostMessage

logger = get_logger(__name__)


class WebhookPublisher:
    """Posts messages to a Mattermost webhook. Best effort, no retries."""

    def __init__(
        self,
        config: Optional[Config] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """Initialize publisher.

        Args:
            config: Application config (defaults to the global config)
            transport: Optional httpx transport, used by tests
        """
        config = config or get_config()

        self.webhook_url = config.webhook_url
        self.timeout_seconds = config.publisher.timeout_seconds
        self.max_error_body_bytes = config.publisher.max_error_body_bytes
        self.user_agent = config.fetcher.user_agent
        self.transport = transport

    def publish(self, message: MattermostMessage) -> None:
        """Send a message to the webhook.

        Args:
            message: Message to post

        Raises:
            PublishError: On transport failure or a non-200 response
        """
        if not self.webhook_url:
            raise PublishError("No webhook URL configured")

        log = logger.bind(channel=message.channel, user=message.username)
        log.debug(f"Posting to Mattermost channel {message.channel!r}")

        try:
            with httpx.Client(timeout=self.timeout_seconds, transport=self.transport) as client:
                with client.stream(
                    "POST",
                    self.webhook_url,
                    json=message.to_payload(),
                    headers={"User-Agent": self.user_agent},
                ) as response:
                    if response.status_code == 200:
                        return

                    body = self._read_limited(response)
                    log.warning(f"Mattermost response {response.status_code}: {body}")
                    raise PublishError(
                        f"Webhook returned HTTP {response.status_code}",
                        status_code=response.status_code,
                    )
        except httpx.HTTPError as e:
            raise PublishError(f"Webhook request failed: {type(e).__name__}: {e}") from e

    def _read_limited(self, response: httpx.Response) -> str:
        """Read at most ``max_error_body_bytes`` of a response body."""
        data = b""
        for chunk in response.iter_bytes():
            data += chunk
            if len(data) >= self.max_error_body_bytes:
                data = data[: self.max_error_body_bytes]
                break
        return data.decode("utf-8", errors="replace")
