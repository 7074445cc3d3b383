"""Console delivery for threshold alerts and status output."""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from typing import Iterable, Optional, TextIO

from common.models import AlertDirection
from rules import ThresholdAlert, Watch

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
ARROWS = {
    AlertDirection.ABOVE: "↑",
    AlertDirection.BELOW: "↓",
}
BANNER_WIDTH = 60


def timestamp(now: Optional[datetime] = None) -> str:
    return (now or datetime.now()).strftime(TIMESTAMP_FORMAT)


def format_price(price: float) -> str:
    """Render a probability price as ``0.5500 (55.0%)``."""

    return f"{price:.4f} ({price * 100:.1f}%)"


def format_alert_message(
    market_name: str,
    price: float,
    alert: ThresholdAlert,
    message: str,
    *,
    now: Optional[datetime] = None,
) -> str:
    """Build the single console line announcing a fired alert."""

    arrow = ARROWS[alert.direction]
    return (
        f"[{timestamp(now)}] {arrow} ALERT: {market_name} | "
        f"Price: {format_price(price)} | "
        f"Threshold: {alert.threshold:.4f} | {message}"
    )


def format_fetch_error(
    market_name: str, reason: str, *, now: Optional[datetime] = None
) -> str:
    return f"[{timestamp(now)}] Error fetching {market_name}: {reason}"


def build_banner(poll_interval: int, watch_count: int) -> str:
    rule = "=" * BANNER_WIDTH
    return "\n".join(
        [
            rule,
            "  Polymarket Watcher",
            f"  Poll interval: {poll_interval}s",
            f"  Watches: {watch_count}",
            rule,
            "",
        ]
    )


def build_snapshot(
    entries: Iterable[tuple[str, Optional[float], Optional[str]]],
    *,
    now: Optional[datetime] = None,
) -> str:
    """Render the price snapshot block.

    ``entries`` holds ``(name, price, error)`` tuples; a missing price with no
    error means the order book was empty.
    """

    lines = [f"[{timestamp(now)}] Prices:"]
    for name, price, error in entries:
        if error is not None:
            lines.append(f"  {name}: error ({error})")
        elif price is None:
            lines.append(f"  {name}: no data")
        else:
            lines.append(f"  {name}: {format_price(price)}")
    return "\n".join(lines)


class ConsoleAlertWriter:
    """Write alert and status lines to a text stream (stdout by default)."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stdout

    def write(self, text: str = "") -> None:
        self.stream.write(text + "\n")
        self.stream.flush()

    def handle_alert(
        self, watch: Watch, price: float, alert: ThresholdAlert, message: str
    ) -> str:
        """Format and emit one fired alert, returning the emitted line."""

        line = format_alert_message(watch.name, price, alert, message)
        self.write(line)
        logger.info(
            "Alert fired for %s (%s %.4f) at %.4f",
            watch.name,
            alert.direction.value,
            alert.threshold,
            price,
        )
        return line

    def handle_fetch_error(self, watch: Watch, reason: str) -> None:
        self.write(format_fetch_error(watch.name, reason))


__all__ = [
    "ConsoleAlertWriter",
    "build_banner",
    "build_snapshot",
    "format_alert_message",
    "format_fetch_error",
    "format_price",
    "timestamp",
]
