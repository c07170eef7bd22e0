"""Logging based status output for headless runs."""

from __future__ import annotations

import logging
from typing import Dict, Optional

from .base import VisualizationStrategy
from ..environment import EngineSnapshot, Phase
from ..persistence import format_duration

logger = logging.getLogger(__name__)


def describe(snapshot: EngineSnapshot) -> str:
    """Return a one-line summary of ``snapshot``."""

    queues = " ".join(
        f"{lane[0].upper()}:{view.queue}" for lane, view in snapshot.lanes.items()
    )
    stats = snapshot.emergency_stats
    line = (
        f"t={snapshot.time}s session={format_duration(snapshot.session_time)} "
        f"phase={snapshot.phase.value} pressure NS:{snapshot.pressure[Phase.NS]}"
        f"|EW:{snapshot.pressure[Phase.EW]} queues {queues} "
        f"reward={snapshot.cumulative_reward:g} avg={snapshot.average_reward:.2f} "
        f"ambulances crossed={stats.crossed} crashed={stats.crashed} waited={stats.waited}"
    )
    if snapshot.emergency_active and snapshot.emergency_lane is not None:
        line += f" EMERGENCY:{snapshot.emergency_lane.upper()}"
    return line


class ConsoleVisualization(VisualizationStrategy):
    """Emit a status line every ``every`` logical seconds."""

    def __init__(self, every: int = 60) -> None:
        self.every = max(1, every)
        self._last_reported: Optional[int] = None
        self.lines_emitted = 0

    def render(self, context: Dict[str, object]) -> None:
        snapshot = context.get("snapshot")
        if not isinstance(snapshot, EngineSnapshot):
            return
        if snapshot.time == self._last_reported or snapshot.time % self.every:
            return
        self._last_reported = snapshot.time
        self.lines_emitted += 1
        logger.info("%s", describe(snapshot))

    def close(self) -> None:
        self._last_reported = None
