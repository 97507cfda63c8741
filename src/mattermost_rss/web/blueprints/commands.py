"""
Slash command endpoint.

Mattermost posts form-encoded requests carrying the command token, the
invoking user and channel, and the command text.
"""

import hmac

from flask import Blueprint, jsonify, request

from mattermost_rss.commands import CommandHandler
from mattermost_rss.logger import get_logger

logger = get_logger(__name__)


class CommandBlueprint:
    """Blueprint exposing ``POST /feeds``."""

    def __init__(self, handler: CommandHandler, token: str):
        """Initialize the command blueprint.

        Args:
            handler: Executes the parsed commands
            token: Slash command token expected in every request
        """
        self.handler = handler
        self.token = token
        self.blueprint = Blueprint("commands", __name__)
        self.blueprint.add_url_rule("/feeds", view_func=self._command, methods=["POST"])

    def _authorized(self, token: str) -> bool:
        """Check the request token; an unconfigured token rejects everything."""
        if not self.token:
            return False
        return hmac.compare_digest(token.encode("utf-8"), self.token.encode("utf-8"))

    def _command(self):
        """Execute a slash command."""
        if not self._authorized(request.form.get("token", "")):
            logger.warning(f"Rejected command with invalid token from {request.remote_addr}")
            return "", 401

        message = self.handler.handle(
            text=request.form.get("text", ""),
            user_name=request.form.get("user_name", ""),
            channel_name=request.form.get("channel_name", ""),
        )
        return jsonify(message.to_payload()), 200
