"""Alert delivery helpers."""

from .console import (  # noqa: F401
    ConsoleAlertWriter,
    build_banner,
    build_snapshot,
    format_alert_message,
    format_fetch_error,
    format_price,
)

__all__ = [
    "ConsoleAlertWriter",
    "build_banner",
    "build_snapshot",
    "format_alert_message",
    "format_fetch_error",
    "format_price",
]
