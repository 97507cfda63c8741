"""
Flask application serving the slash command and control endpoints.
"""

from typing import Optional

from flask import Flask

from mattermost_rss.commands import CommandHandler
from mattermost_rss.config import Config, get_config
from mattermost_rss.core.dispatcher import FeedDispatcher
from mattermost_rss.logger import get_logger
from mattermost_rss.storage.feed_store import FeedStore
from mattermost_rss.web.blueprints import ActuatorBlueprint, CommandBlueprint, DispatchBlueprint
from mattermost_rss.web.serializers import api_response

logger = get_logger(__name__)


def create_app(
    dispatcher: FeedDispatcher,
    config: Optional[Config] = None,
    feed_store: Optional[FeedStore] = None,
) -> Flask:
    """Create and configure Flask application.

    Args:
        dispatcher: Dispatcher whose subscriptions the commands manage
        config: Application config (defaults to the dispatcher's)
        feed_store: Feed persistence (defaults to the configured feed file)

    Returns:
        Configured Flask application
    """
    config = config or dispatcher.config or get_config()
    feed_store = feed_store or FeedStore(config.feed_file)

    app = Flask(__name__)
    app.config["DEBUG"] = config.web.debug

    handler = CommandHandler(dispatcher, feed_store)

    app.register_blueprint(CommandBlueprint(handler, config.token).blueprint)
    app.register_blueprint(ActuatorBlueprint().blueprint)
    app.register_blueprint(DispatchBlueprint(dispatcher).blueprint)

    if not config.token:
        logger.warning("No slash command token configured, /feeds will reject all requests")

    @app.errorhandler(404)
    def not_found(e):
        """Handle 404 errors."""
        return api_response(success=False, error="Not found", status=404)

    @app.errorhandler(500)
    def server_error(e):
        """Handle 500 errors."""
        logger.error(f"Server error: {e}")
        return api_response(success=False, error="Internal server error", status=500)

    return app
