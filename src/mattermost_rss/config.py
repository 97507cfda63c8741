"""
Configuration management for mattermost-rss-reader.

Uses Pydantic for validation and pydantic-settings for environment variable support.
Configuration files may be JSON or YAML.
"""

import json
import re
from datetime import timedelta
from pathlib import Path
from typing import Any, Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from mattermost_rss.exceptions import ConfigError
from mattermost_rss.logger import get_logger
from mattermost_rss.models.feed import FeedConfig, filter_feed_definitions

logger = get_logger(__name__)

DEFAULT_INTERVAL = timedelta(minutes=5)

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "\u00b5s": 1e-6,
    "\u03bcs": 1e-6,
    "ms": 0.001,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_UNIT_PATTERN = "ns|us|\u00b5s|\u03bcs|ms|s|m|h"
_DURATION_PART = re.compile(rf"(\d+(?:\.\d+)?)({_UNIT_PATTERN})")
_DURATION_FULL = re.compile(rf"(?:\d+(?:\.\d+)?(?:{_UNIT_PATTERN}))+")

# Keys used by configuration files of older releases
_LEGACY_KEYS = {
    "WebhookURL": "webhook_url",
    "Token": "token",
    "Channel": "channel",
    "IconURL": "icon_url",
    "Username": "username",
    "SkipInitial": "skip_initial",
    "ShowInitial": "show_initial",
    "Interval": "interval",
    "Detailed": "detailed",
    "FeedFile": "feed_file",
    "Feeds": "feeds",
}


def parse_duration(value: Any) -> Optional[timedelta]:
    """Parse a duration such as ``"90s"``, ``"5m"`` or ``"1h30m"``.

    Units are ns, us, ms, s, m and h. Plain numbers are taken
    as seconds.

    Args:
        value: Duration string, number of seconds or timedelta

    Returns:
        Parsed timedelta, or None if the value cannot be parsed
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, timedelta):
        return value
    if isinstance(value, (int, float)):
        return timedelta(seconds=value)

    text = str(value).strip().lower()
    if not text:
        return None
    if re.fullmatch(r"\d+(?:\.\d+)?", text):
        return timedelta(seconds=float(text))
    if not _DURATION_FULL.fullmatch(text):
        return None

    seconds = sum(float(amount) * _DURATION_UNITS[unit] for amount, unit in _DURATION_PART.findall(text))
    return timedelta(seconds=seconds)


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(
        default="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        description="Log format"
    )

    # File logging
    file_enabled: bool = Field(default=False, description="Enable file logging")
    file_path: str = Field(default="logs/mattermost_rss.log", description="Log file path")
    rotation: str = Field(default="100 MB", description="Log rotation size")
    retention: str = Field(default="30 days", description="Log retention period")

    # Console logging
    console_enabled: bool = Field(default=True, description="Enable console logging")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"]
        v = v.upper()
        if v == "WARN":
            v = "WARNING"
        elif v == "FATAL":
            v = "CRITICAL"
        if v not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v


class FetcherConfig(BaseSettings):
    """Feed fetcher configuration."""

    model_config = SettingsConfigDict(env_prefix="FETCHER_")

    # HTTP settings
    timeout_seconds: int = Field(default=30, ge=1, le=300, description="Request timeout")
    user_agent: str = Field(
        default="mattermost-rss-reader/0.1.0",
        description="User-Agent header"
    )

    # Retry settings
    max_retries: int = Field(default=1, ge=0, le=10)
    retry_delay_seconds: int = Field(default=2, ge=0)

    # Follow redirects
    follow_redirects: bool = Field(default=True)
    max_redirects: int = Field(default=5, ge=0, le=20)


class PublisherConfig(BaseSettings):
    """Webhook publisher configuration."""

    model_config = SettingsConfigDict(env_prefix="PUBLISHER_")

    timeout_seconds: int = Field(default=15, ge=1, le=300, description="Webhook request timeout")
    max_error_body_bytes: int = Field(
        default=1 << 20, ge=0,
        description="Bytes of a failed webhook response kept for the log"
    )


class SchedulerConfig(BaseSettings):
    """Poll timer and delivery queue configuration."""

    model_config = SettingsConfigDict(env_prefix="SCHEDULER_")

    timezone: str = Field(default="UTC", description="Scheduler timezone")
    misfire_grace_time: int = Field(default=60, ge=0, description="Misfire grace time in seconds")
    coalesce: bool = Field(default=True, description="Coalesce misfired runs")
    queue_size: int = Field(default=200, ge=1, le=10_000, description="Delivery queue capacity")


class WebConfig(BaseSettings):
    """Command server configuration."""

    model_config = SettingsConfigDict(env_prefix="WEB_")

    host: str = Field(default="127.0.0.1", description="Command server host")
    port: int = Field(default=9090, ge=1, le=65535, description="Command server port")
    debug: bool = Field(default=False, description="Debug mode")


class Config(BaseSettings):
    """Main application configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="MMRSS_",
        case_sensitive=False,
    )

    # Application
    environment: str = Field(default="dev", description="Runtime environment")

    # Mattermost
    webhook_url: str = Field(default="", description="Incoming webhook URL")
    token: str = Field(default="", description="Slash command token")
    channel: str = Field(default="", description="Default channel")
    icon_url: str = Field(default="", description="Default icon URL")
    username: str = Field(default="", description="Default poster name")
    detailed: bool = Field(default=False, description="Post all feeds as detailed attachments")

    # Polling
    interval: timedelta = Field(default=DEFAULT_INTERVAL, description="Poll interval")
    skip_initial: bool = Field(default=False, description="Post nothing on the first cycle")
    show_initial: int = Field(default=0, ge=0, description="Entries per feed posted on the first cycle")

    # Subscriptions
    feed_file: Optional[str] = Field(default=None, description="Separate JSON file holding the feeds")
    feeds: list[FeedConfig] = Field(default_factory=list, description="Inline feed list")

    # Sub-configurations
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    fetcher: FetcherConfig = Field(default_factory=FetcherConfig)
    publisher: PublisherConfig = Field(default_factory=PublisherConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    web: WebConfig = Field(default_factory=WebConfig)

    @field_validator("interval", mode="before")
    @classmethod
    def parse_interval(cls, v: Any) -> timedelta:
        """Parse the poll interval, falling back to the default when unusable."""
        interval = parse_duration(v)
        if interval is None or interval.total_seconds() <= 0:
            if v not in (None, ""):
                logger.warning(f"Invalid interval {v!r}, using default of {DEFAULT_INTERVAL}")
            return DEFAULT_INTERVAL
        return interval

    @field_validator("feeds", mode="before")
    @classmethod
    def drop_feeds_without_url(cls, v: Any) -> Any:
        """Remove feed definitions that have no URL."""
        return filter_feed_definitions(v)

    @field_validator("feed_file", mode="before")
    @classmethod
    def empty_feed_file(cls, v: Any) -> Any:
        """Treat an empty feed file path as unset."""
        return v or None

    @property
    def interval_seconds(self) -> float:
        """Poll interval in seconds."""
        return self.interval.total_seconds()


# Global configuration instance
_config: Optional[Config] = None

_NESTED_CONFIGS = {
    "logging": LoggingConfig,
    "fetcher": FetcherConfig,
    "publisher": PublisherConfig,
    "scheduler": SchedulerConfig,
    "web": WebConfig,
}


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def set_config(config: Optional[Config]) -> None:
    """Replace the global configuration instance."""
    global _config
    _config = config


def _read_config_file(path: Path) -> Any:
    """Read a JSON or YAML configuration file."""
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in (".yml", ".yaml"):
        import yaml

        return yaml.safe_load(text) or {}
    return json.loads(text)


def load_config(config_path: str) -> Config:
    """Load configuration from a JSON or YAML file.

    Values from the file take precedence over environment variables. When the
    file names a ``feed_file``, the feed list is read from there.

    Args:
        config_path: Path to the configuration file.

    Returns:
        Config instance loaded from the file.

    Raises:
        ConfigError: If the file is missing, malformed or invalid.
    """
    import yaml

    path = Path(config_path)
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        config_dict = _read_config_file(path)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ConfigError(f"Error reading config file {config_path}: {e}") from e

    if not isinstance(config_dict, dict):
        raise ConfigError(f"Configuration file {config_path} must contain an object")

    main_config = {}
    for key, value in config_dict.items():
        main_config[_LEGACY_KEYS.get(key, key)] = value

    for key in _NESTED_CONFIGS:
        section = main_config.get(key)
        if section is not None and not isinstance(section, dict):
            raise ConfigError(f"Section '{key}' in {config_path} must be an object")

    try:
        # Nested configs are built separately so env vars can still fill the gaps
        for key, config_class in _NESTED_CONFIGS.items():
            main_config[key] = config_class(**(main_config.get(key) or {}))
        config = Config(**main_config)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {config_path}: {e}") from e

    if config.feed_file:
        from mattermost_rss.storage.feed_store import FeedStore

        feeds = FeedStore(config.feed_file).load()
        if feeds is not None:
            config = config.model_copy(update={"feeds": feeds})

    return config


def reload_config(config_path: str) -> Config:
    """Load configuration from a file and install it as the global instance."""
    config = load_config(config_path)
    set_config(config)
    return config
