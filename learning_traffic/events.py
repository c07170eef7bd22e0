"""Messages exchanged with the presentation layer and the decision log."""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Deque, List, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EmergencySpawnRequested:
    """Engine asks the presentation layer to show an emergency vehicle."""

    lane: str


@dataclass(frozen=True, slots=True)
class EmergencyRemovalRequested:
    """Engine asks the presentation layer to drop the emergency vehicle."""

    lane: str


EngineEvent = Union[EmergencySpawnRequested, EmergencyRemovalRequested]


@dataclass(frozen=True, slots=True)
class VehicleSpawned:
    """A cosmetic vehicle was placed on screen.

    Regular vehicles consume one unit of the lane's visual backlog, an
    emergency vehicle acknowledges the pending spawn request.
    """

    lane: str
    emergency: bool = False


@dataclass(frozen=True, slots=True)
class VehicleCleared:
    """A cosmetic vehicle left the screen or was removed."""

    lane: str
    emergency: bool = False


PresentationMessage = Union[VehicleSpawned, VehicleCleared]


class LogCategory(str, Enum):
    NORMAL = "normal"
    SWITCH = "switch"
    EXTEND = "extend"
    ALERT = "alert"


@dataclass(frozen=True, slots=True)
class LogEvent:
    timestamp: int
    message: str
    category: LogCategory


class DecisionLog:
    """Bounded, ordered stream of ``(logical time, message, category)`` entries.

    ``extend`` entries are throttled to one per ``extend_interval`` wall-clock
    seconds.  Every accepted entry is mirrored to :mod:`logging`.
    """

    def __init__(
        self,
        max_entries: int = 200,
        extend_interval: float = 5.0,
        time_func: Callable[[], float] | None = None,
    ) -> None:
        self.extend_interval = extend_interval
        self.time_func = time_func or time.monotonic
        self._entries: Deque[LogEvent] = deque(maxlen=max_entries)
        self._last_extend: float | None = None

    def __len__(self) -> int:
        return len(self._entries)

    def record(
        self,
        timestamp: int,
        message: str,
        category: LogCategory = LogCategory.NORMAL,
    ) -> bool:
        """Append an entry and return ``False`` when it was throttled."""

        if category is LogCategory.EXTEND:
            now = self.time_func()
            if self._last_extend is not None and now - self._last_extend < self.extend_interval:
                return False
            self._last_extend = now

        self._entries.append(LogEvent(timestamp, message, category))
        if category is LogCategory.ALERT:
            logger.warning("[%ss] %s", timestamp, message)
        elif category is LogCategory.EXTEND:
            logger.debug("[%ss] %s", timestamp, message)
        else:
            logger.info("[%ss] %s", timestamp, message)
        return True

    def entries(self) -> List[LogEvent]:
        return list(self._entries)

    def tail(self, count: int) -> List[LogEvent]:
        if count <= 0:
            return []
        return list(self._entries)[-count:]

    def clear(self) -> None:
        self._entries.clear()
        self._last_extend = None
