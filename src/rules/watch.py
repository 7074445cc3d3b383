"""Runtime state for a single monitored market."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Tuple

from common.config import WatchDefinition

from .threshold import ThresholdAlert


@dataclass
class Watch:
    """A resolved market and the alerts it owns."""

    name: str
    identifier: str
    token_id: str
    question: str
    outcome: str = ""
    alerts: list[ThresholdAlert] = field(default_factory=list)

    @classmethod
    def from_definition(
        cls,
        definition: WatchDefinition,
        *,
        token_id: str,
        question: str,
        outcome: str = "",
    ) -> "Watch":
        name = definition.name or definition.identifier
        return cls(
            name=name,
            identifier=definition.identifier,
            token_id=token_id,
            question=question,
            outcome=outcome,
            alerts=[ThresholdAlert.from_definition(alert) for alert in definition.alerts],
        )

    def evaluate(self, price: float) -> Iterator[Tuple[ThresholdAlert, str]]:
        """Check every alert in order, yielding each one that fires."""

        for alert in self.alerts:
            message = alert.check(price)
            if message is not None:
                yield alert, message


__all__ = ["Watch"]
