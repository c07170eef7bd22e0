"""Authoritative mutable state of the simulated intersection."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Deque, Dict, Optional, Tuple

from .rewards import RewardEvent, RewardPolicy

LANES: Tuple[str, ...] = ("north", "south", "east", "west")


class Phase(str, Enum):
    NS = "NS"
    EW = "EW"

    @property
    def opposite(self) -> "Phase":
        return Phase.EW if self is Phase.NS else Phase.NS


PHASE_LANES: Dict[Phase, Tuple[str, str]] = {
    Phase.NS: ("north", "south"),
    Phase.EW: ("east", "west"),
}


def phase_of(lane: str) -> Phase:
    """Return the phase group ``lane`` belongs to."""

    return Phase.NS if lane in PHASE_LANES[Phase.NS] else Phase.EW


def _arrival_window(size: int = 5) -> Deque[int]:
    return deque(maxlen=size)


@dataclass(slots=True)
class Lane:
    """Single approach with its waiting queue and short arrival history."""

    queue: int = 0
    green: bool = False
    recent_arrivals: Deque[int] = field(default_factory=_arrival_window)

    def record_arrival(self, arrived: bool) -> None:
        self.recent_arrivals.append(1 if arrived else 0)

    @property
    def pressure(self) -> int:
        return sum(self.recent_arrivals)


@dataclass(slots=True)
class EmergencyState:
    """Lifecycle of the (single) emergency vehicle episode.

    ``lane`` is set exactly while ``active`` is true.  ``visual_pending`` marks
    a spawn the presentation layer has not shown yet and ``visible_vehicles``
    counts emergency vehicles it reports on screen.
    """

    active: bool = False
    lane: Optional[str] = None
    ticks_remaining: int = 0
    did_wait: bool = False
    crashed: bool = False
    visual_pending: bool = False
    visible_vehicles: int = 0

    def activate(self, lane: str, ticks: int) -> None:
        self.active = True
        self.lane = lane
        self.ticks_remaining = ticks
        self.visual_pending = True
        self.did_wait = False
        self.crashed = False

    def deactivate(self) -> None:
        self.active = False
        self.lane = None
        self.visual_pending = False


@dataclass(slots=True)
class EmergencyStats:
    crossed: int = 0
    crashed: int = 0
    waited: int = 0


@dataclass(slots=True)
class EnvironmentState:
    """Mutable record every engine component reads and writes each tick."""

    lanes: Dict[str, Lane]
    phase: Phase = Phase.NS
    time: int = 0
    total_wait: int = 0
    ticks_since_switch: int = 0
    bursts: Dict[str, int] = field(default_factory=lambda: {lane: 0 for lane in LANES})
    visual_queue: Dict[str, int] = field(default_factory=lambda: {lane: 0 for lane in LANES})
    pressure: Dict[Phase, int] = field(default_factory=lambda: {Phase.NS: 0, Phase.EW: 0})
    cumulative_reward: float = 0.0
    emergency: EmergencyState = field(default_factory=EmergencyState)
    emergency_stats: EmergencyStats = field(default_factory=EmergencyStats)

    @classmethod
    def fresh(cls, window: int = 5, phase: Phase = Phase.NS) -> "EnvironmentState":
        lanes = {lane: Lane(recent_arrivals=_arrival_window(window)) for lane in LANES}
        env = cls(lanes=lanes, phase=phase)
        env.apply_phase(phase)
        return env

    def apply_phase(self, phase: Phase) -> None:
        """Make ``phase`` active and derive every lane's green flag from it."""

        self.phase = phase
        for name, lane in self.lanes.items():
            lane.green = name in PHASE_LANES[phase]

    def add_reward(self, rewards: RewardPolicy, event: RewardEvent, count: float = 1) -> None:
        self.cumulative_reward += rewards[event] * count

    def compute_pressure(self) -> None:
        for phase, members in PHASE_LANES.items():
            self.pressure[phase] = sum(self.lanes[lane].pressure for lane in members)

    @property
    def pressure_difference(self) -> int:
        return self.pressure[Phase.NS] - self.pressure[Phase.EW]

    def release_green_queues(self, rewards: RewardPolicy, max_pass: int) -> int:
        """Let up to ``max_pass`` vehicles through on every green lane."""

        released_total = 0
        for lane in self.lanes.values():
            if not lane.green:
                continue
            released = min(max_pass, lane.queue)
            lane.queue -= released
            released_total += released
            self.add_reward(rewards, RewardEvent.CAR_PASSED, released)
        return released_total

    def crossing_has_traffic(self, lane: str) -> bool:
        """Return whether the approach crossing ``lane`` has anyone queued."""

        crossing = PHASE_LANES[phase_of(lane).opposite]
        return any(self.lanes[name].queue > 0 for name in crossing)

    @property
    def total_queue(self) -> int:
        return sum(lane.queue for lane in self.lanes.values())

    def aggregate_waiting(self, rewards: RewardPolicy) -> int:
        """Fold the current queues into the wait accumulator and the reward."""

        waiting = self.total_queue
        self.total_wait += waiting
        self.add_reward(rewards, RewardEvent.CAR_WAITING, waiting)
        return waiting

    def consume_visual(self, lane: str) -> bool:
        if self.visual_queue.get(lane, 0) <= 0:
            return False
        self.visual_queue[lane] -= 1
        return True


@dataclass(frozen=True, slots=True)
class LaneView:
    queue: int
    green: bool
    visual_queue: int


@dataclass(frozen=True, slots=True)
class EngineSnapshot:
    """Read-only view handed to renderers once per frame."""

    phase: Phase
    lanes: Dict[str, LaneView]
    pressure: Dict[Phase, int]
    cumulative_reward: float
    average_reward: float
    total_wait: int
    emergency_active: bool
    emergency_lane: Optional[str]
    emergency_stats: EmergencyStats
    time: int
    session_time: int
    paused: bool
    sim_speed: float

    @classmethod
    def capture(
        cls,
        env: EnvironmentState,
        *,
        session_time: int,
        paused: bool,
        sim_speed: float,
    ) -> "EngineSnapshot":
        stats = env.emergency_stats
        return cls(
            phase=env.phase,
            lanes={
                name: LaneView(lane.queue, lane.green, env.visual_queue[name])
                for name, lane in env.lanes.items()
            },
            pressure=dict(env.pressure),
            cumulative_reward=env.cumulative_reward,
            average_reward=env.cumulative_reward / env.time if env.time > 0 else 0.0,
            total_wait=env.total_wait,
            emergency_active=env.emergency.active,
            emergency_lane=env.emergency.lane,
            emergency_stats=EmergencyStats(stats.crossed, stats.crashed, stats.waited),
            time=env.time,
            session_time=session_time,
            paused=paused,
            sim_speed=sim_speed,
        )
