"""
Command line entry point: load the configuration, start the dispatch loop
and serve slash commands until interrupted.
"""

import argparse
import signal
import sys
from typing import Optional

from pydantic import ValidationError

from mattermost_rss import __version__
from mattermost_rss.config import LoggingConfig, load_config, set_config
from mattermost_rss.core.dispatcher import create_dispatcher
from mattermost_rss.exceptions import ConfigError
from mattermost_rss.logger import get_logger, setup_logger
from mattermost_rss.web.app import create_app

logger = get_logger(__name__)

PROG = "mattermost-rss-reader"


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(prog=PROG, description="Post RSS/Atom feed updates to Mattermost")
    parser.add_argument("--config", default="./config.json", help="Path to the config file")
    parser.add_argument("--bind", default=None, help="HTTP binding as host:port (default 127.0.0.1:9090)")
    parser.add_argument("--environment", default=None, help="Runtime environment")
    parser.add_argument("--loglevel", default=None, help="Log level (debug, info, warn, error, fatal)")
    parser.add_argument("--version", action="store_true", help="Show version")
    return parser.parse_args(argv)


def parse_bind(bind: str) -> tuple[str, int]:
    """Split a ``host:port`` binding.

    Raises:
        ConfigError: If the binding is malformed
    """
    host, sep, port = bind.rpartition(":")
    if not sep or not port.isdigit() or not 0 < int(port) < 65536:
        raise ConfigError(f"Invalid bind address: {bind!r}")
    return host or "127.0.0.1", int(port)


def _terminate(signum, frame):
    raise SystemExit(0)


def main(argv: Optional[list[str]] = None) -> int:
    """Run the service.

    Returns:
        Process exit code
    """
    args = parse_args(argv)

    if args.version:
        print(f"{PROG} version: {__version__}")
        return 0

    try:
        config = load_config(args.config)

        updates = {}
        if args.environment:
            updates["environment"] = args.environment
        if args.bind:
            host, port = parse_bind(args.bind)
            updates["web"] = config.web.model_copy(update={"host": host, "port": port})
        config = config.model_copy(update=updates)

        level = LoggingConfig(level=args.loglevel).level if args.loglevel else None
    except (ConfigError, ValidationError) as e:
        logger.critical(f"Error reading config file: {e}")
        return 1

    set_config(config)
    setup_logger(level=level)

    log = logger.bind(application=PROG, environment=config.environment, version=__version__)
    log.info(f"Starting {PROG} {__version__} ({config.environment}) with {len(config.feeds)} feeds")
    if not config.webhook_url:
        log.warning("No webhook URL configured, posting will fail")

    dispatcher = create_dispatcher(config)
    app = create_app(dispatcher, config)

    signal.signal(signal.SIGTERM, _terminate)
    dispatcher.start(run_immediately=True)

    try:
        log.info(f"Listening for commands on http://{config.web.host}:{config.web.port}/feeds")
        app.run(host=config.web.host, port=config.web.port, debug=False, use_reloader=False)
    except OSError as e:
        log.error(f"Error starting server: {e}")
        return 1
    finally:
        dispatcher.stop(wait=False)
        log.info("Stopped")

    return 0


if __name__ == "__main__":
    sys.exit(main())
