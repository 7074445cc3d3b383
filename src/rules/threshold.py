"""Edge-triggered threshold alerts."""

from __future__ import annotations

from common.config import AlertDefinition
from common.models import AlertDirection


class ThresholdAlert:
    """Fire once when the price crosses ``threshold`` in ``direction``.

    The alert starts armed. A price on the crossed side (inclusive of the
    threshold itself) fires the message and marks the alert triggered; further
    crossed prices are suppressed until a price back on the other side re-arms
    it. Re-arming is silent.
    """

    def __init__(
        self, direction: AlertDirection | str, threshold: float, message: str
    ) -> None:
        self.direction = AlertDirection(direction)
        self.threshold = threshold
        self.message = message
        self._triggered = False

    @classmethod
    def from_definition(cls, definition: AlertDefinition) -> "ThresholdAlert":
        # Definitions coming out of the config loader always carry a message.
        return cls(definition.direction, definition.threshold, definition.message or "")

    @property
    def triggered(self) -> bool:
        return self._triggered

    def is_crossed(self, price: float) -> bool:
        """Return whether ``price`` sits on the triggering side of the threshold."""

        if self.direction is AlertDirection.ABOVE:
            return price >= self.threshold
        return price <= self.threshold

    def check(self, price: float) -> str | None:
        """Feed a new price; return the message only on the crossing edge."""

        crossed = self.is_crossed(price)
        if crossed and not self._triggered:
            self._triggered = True
            return self.message

        if not crossed and self._triggered:
            self._triggered = False

        return None

    def __repr__(self) -> str:
        state = "triggered" if self._triggered else "armed"
        return (
            f"ThresholdAlert({self.direction.value} {self.threshold:.4f}, "
            f"{self.message!r}, {state})"
        )


__all__ = ["ThresholdAlert"]
