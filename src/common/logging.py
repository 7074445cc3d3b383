"""Logging helpers for the Polymarket watcher."""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

DEFAULT_LOG_PATH = Path("logs/watcher.log")
NOISY_LOGGERS = ("aiohttp.access", "aiohttp.client", "asyncio")


def setup_logging(log_level: int = logging.INFO, log_file: Optional[Path] = None) -> None:
    """Configure a stderr handler and a rotating file handler on the root logger.

    Alert and status lines own stdout, so log records never go there.

    Args:
        log_level: Numeric logging level (e.g., ``logging.INFO``).
        log_file: Optional path to a log file. Defaults to ``logs/watcher.log``.
    """

    root = logging.getLogger()
    if root.handlers:
        # Avoid adding duplicate handlers when called multiple times.
        return

    root.setLevel(log_level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    # Warnings already have a console line of their own on stdout.
    console_handler.setLevel(max(log_level, logging.ERROR))
    root.addHandler(console_handler)

    file_path = log_file or DEFAULT_LOG_PATH
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = RotatingFileHandler(
        file_path, maxBytes=2_000_000, backupCount=5, encoding="utf-8"
    )
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    root.debug("Logging configured", extra={"log_file": str(file_path)})


def level_from_name(name: str) -> int:
    """Translate a level name such as ``"debug"`` into its numeric value."""

    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


__all__ = ["DEFAULT_LOG_PATH", "level_from_name", "setup_logging"]
