"""Common utilities shared across the Polymarket watcher."""

from .config import (  # noqa: F401
    AlertDefinition,
    ConfigError,
    WatchConfig,
    WatchDefinition,
    load_config,
    load_watch_config,
)
from .logging import level_from_name, setup_logging  # noqa: F401
from .models import AlertDirection, MarketInfo, TokenInfo  # noqa: F401

__all__ = [
    "AlertDefinition",
    "AlertDirection",
    "ConfigError",
    "MarketInfo",
    "TokenInfo",
    "WatchConfig",
    "WatchDefinition",
    "level_from_name",
    "load_config",
    "load_watch_config",
    "setup_logging",
]
