"""
Logging configuration for mattermost-rss-reader.

Uses loguru for console and optional rotating file output.
"""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger as _logger


def setup_logger(
    level: Optional[str] = None,
    log_file: Optional[str] = None,
    rotation: Optional[str] = None,
    retention: Optional[str] = None,
    format: Optional[str] = None,
    file_enabled: Optional[bool] = None,
) -> None:
    """Configure the logger with file and console handlers.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, etc.)
        log_file: Path to log file
        rotation: Log rotation setting (e.g., "100 MB", "1 day")
        retention: Log retention setting (e.g., "30 days", "1 week")
        format: Log format string
        file_enabled: Force the file handler on or off
    """
    from mattermost_rss.config import get_config

    log_config = get_config().logging

    # Use provided values or fall back to config
    level = (level or log_config.level).upper()
    log_file = log_file or log_config.file_path
    rotation = rotation or log_config.rotation
    retention = retention or log_config.retention
    format = format or log_config.format
    if file_enabled is None:
        file_enabled = log_config.file_enabled

    # Remove default handler
    _logger.remove()

    if log_config.console_enabled:
        _logger.add(
            sys.stderr,
            format=format,
            level=level,
            colorize=True,
            backtrace=True,
            diagnose=False,
        )

    if file_enabled:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        _logger.add(
            log_file,
            format=format,
            level=level,
            rotation=rotation,
            retention=retention,
            compression="zip",
            encoding="utf-8",
            enqueue=True,  # Thread-safe logging
            backtrace=True,
            diagnose=False,
        )


def get_logger(name: Optional[str] = None):
    """Get a logger instance.

    Args:
        name: Logger name (typically __name__ from calling module)

    Returns:
        Logger instance
    """
    if name:
        return _logger.bind(name=name)
    return _logger


# Re-export logger for direct use
logger = _logger

__all__ = [
    "setup_logger",
    "get_logger",
    "logger",
]
