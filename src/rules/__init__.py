"""Alert evaluation rules and per-market state."""

from .threshold import ThresholdAlert
from .watch import Watch

__all__ = ["ThresholdAlert", "Watch"]
