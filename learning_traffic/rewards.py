"""User adjustable reward weights."""

from __future__ import annotations

import logging
import math
from enum import Enum
from typing import Dict, Mapping

logger = logging.getLogger(__name__)


class RewardEvent(str, Enum):
    CAR_PASSED = "CAR_PASSED"
    CAR_WAITING = "CAR_WAITING"
    AMBULANCE_PASSED = "AMBULANCE_PASSED"
    AMBULANCE_WAITING = "AMBULANCE_WAITING"
    AMBULANCE_CRASH = "AMBULANCE_CRASH"
    PHASE_SWITCH = "PHASE_SWITCH"


DEFAULT_REWARDS: Dict[RewardEvent, float] = {
    RewardEvent.CAR_PASSED: 1.0,
    RewardEvent.CAR_WAITING: -1.0,
    RewardEvent.AMBULANCE_PASSED: 5.0,
    RewardEvent.AMBULANCE_WAITING: -200.0,
    RewardEvent.AMBULANCE_CRASH: -500.0,
    RewardEvent.PHASE_SWITCH: -2.0,
}


def parse_weight(raw: object) -> float:
    """Parse a user supplied weight, falling back to ``0`` for garbage input."""

    try:
        value = float(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(value):
        return 0.0
    return value


class RewardPolicy:
    """Signed weight per reward event.

    The policy is written only by external configuration (command line flags,
    the pygame key bindings) and read by reward computation inside the engine.
    """

    def __init__(self, overrides: Mapping[str, object] | None = None) -> None:
        self._weights: Dict[RewardEvent, float] = dict(DEFAULT_REWARDS)
        for name, raw in (overrides or {}).items():
            self.override(name, raw)

    def __getitem__(self, event: RewardEvent) -> float:
        return self._weights[event]

    def weight(self, event: RewardEvent) -> float:
        return self._weights[event]

    def override(self, name: str | RewardEvent, raw: object) -> float:
        """Set the weight of ``name`` from raw user input and return it."""

        event = RewardEvent(name.upper() if isinstance(name, str) else name)
        value = parse_weight(raw)
        self._weights[event] = value
        logger.info("Updated %s to %s", event.value, value)
        return value

    def as_dict(self) -> Dict[str, float]:
        return {event.value: value for event, value in self._weights.items()}
