"""Cosmetic vehicles animated on top of the engine state.

Nothing here feeds the learner: the world only turns the engine's visual
backlog and emergency requests into moving vehicles and reports back through
:class:`~learning_traffic.events.VehicleSpawned` and
:class:`~learning_traffic.events.VehicleCleared`.
"""

from __future__ import annotations

from dataclasses import dataclass
import math
import random
from typing import Dict, List, Optional, Tuple

from ..engine import TrafficEngine
from ..environment import LANES, EngineSnapshot
from ..events import (
    EmergencyRemovalRequested,
    EmergencySpawnRequested,
    VehicleCleared,
    VehicleSpawned,
)

WORLD_SIZE = 400.0
CENTER = WORLD_SIZE / 2
ROAD_WIDTH = 100.0
LANE_WIDTH = ROAD_WIDTH / 2
STOP_OFFSET = 65.0
STOP_DISTANCE = 60.0
FOLLOW_DISTANCE = 50.0
SPAWN_CLEARANCE = 60.0
DESPAWN_MARGIN = 100.0

# heading (dx, dy) of traffic arriving from each approach
HEADINGS: Dict[str, Tuple[int, int]] = {
    "north": (0, 1),
    "south": (0, -1),
    "east": (-1, 0),
    "west": (1, 0),
}


def spawn_point(lane: str, distance: float = 50.0) -> Tuple[float, float]:
    """Return where a vehicle entering from ``lane`` appears."""

    if lane == "north":
        return CENTER - LANE_WIDTH / 2, -distance
    if lane == "south":
        return CENTER + LANE_WIDTH / 2, WORLD_SIZE + distance
    if lane == "east":
        return WORLD_SIZE + distance, CENTER - LANE_WIDTH / 2
    return -distance, CENTER + LANE_WIDTH / 2


@dataclass(slots=True)
class CosmeticVehicle:
    """Vehicle drawn by the renderers, positions in world pixels."""

    lane: str
    x: float
    y: float
    speed: float
    emergency: bool = False
    stopped: bool = False
    hue: float = 0.0

    @property
    def heading(self) -> Tuple[int, int]:
        return HEADINGS[self.lane]

    def distance_to_stop_line(self) -> float:
        dx, dy = self.heading
        if dy:
            stop = CENTER - dy * STOP_OFFSET
            return (stop - self.y) * dy
        stop = CENTER - dx * STOP_OFFSET
        return (stop - self.x) * dx

    def distance_to(self, other: "CosmeticVehicle") -> float:
        dx, dy = self.heading
        return (other.x - self.x) * dx + (other.y - self.y) * dy

    def advance(self, dt: float, can_move: bool) -> None:
        self.stopped = not can_move
        if can_move:
            dx, dy = self.heading
            self.x += dx * self.speed * dt
            self.y += dy * self.speed * dt

    def on_screen(self) -> bool:
        low, high = -DESPAWN_MARGIN, WORLD_SIZE + DESPAWN_MARGIN
        return low < self.x < high and low < self.y < high


class IntersectionWorld:
    """Toy four-way intersection populated from the engine's backlog."""

    def __init__(
        self,
        rng: random.Random | None = None,
        min_speed: float = 120.0,
        max_speed: float = 210.0,
        emergency_speed: float = 240.0,
    ) -> None:
        self.rng = rng or random.Random()
        self.min_speed = min_speed
        self.max_speed = max_speed
        self.emergency_speed = emergency_speed
        self.vehicles: List[CosmeticVehicle] = []

    def clear(self) -> None:
        self.vehicles = []

    def _spawn_emergency(self, engine: TrafficEngine, lane: str) -> None:
        x, y = spawn_point(lane, distance=30.0)
        self.vehicles.append(
            CosmeticVehicle(lane, x, y, speed=self.emergency_speed, emergency=True)
        )
        engine.notify(VehicleSpawned(lane, emergency=True))

    def _remove_emergencies(self, engine: TrafficEngine) -> None:
        kept: List[CosmeticVehicle] = []
        for vehicle in self.vehicles:
            if vehicle.emergency:
                engine.notify(VehicleCleared(vehicle.lane, emergency=True))
            else:
                kept.append(vehicle)
        self.vehicles = kept

    def _handle_events(self, engine: TrafficEngine) -> None:
        for event in engine.drain_events():
            if isinstance(event, EmergencySpawnRequested):
                self._spawn_emergency(engine, event.lane)
            elif isinstance(event, EmergencyRemovalRequested):
                self._remove_emergencies(engine)

    def _spawn_from_backlog(self, engine: TrafficEngine, snapshot: EngineSnapshot) -> None:
        for lane in LANES:
            if snapshot.lanes[lane].visual_queue <= 0:
                continue
            x, y = spawn_point(lane)
            if any(math.hypot(v.x - x, v.y - y) < SPAWN_CLEARANCE for v in self.vehicles):
                continue
            speed = self.rng.uniform(self.min_speed, self.max_speed)
            self.vehicles.append(
                CosmeticVehicle(lane, x, y, speed=speed, hue=self.rng.uniform(0.0, 360.0))
            )
            engine.notify(VehicleSpawned(lane))

    def _vehicle_ahead(self, vehicle: CosmeticVehicle) -> Optional[float]:
        gaps = [
            vehicle.distance_to(other)
            for other in self.vehicles
            if other is not vehicle and other.lane == vehicle.lane
        ]
        ahead = [gap for gap in gaps if gap > 0]
        return min(ahead) if ahead else None

    def _can_move(self, vehicle: CosmeticVehicle, snapshot: EngineSnapshot) -> bool:
        red = not snapshot.lanes[vehicle.lane].green
        to_stop = vehicle.distance_to_stop_line()
        if not vehicle.emergency and red and 0 < to_stop < STOP_DISTANCE:
            return False
        gap = self._vehicle_ahead(vehicle)
        return gap is None or gap >= FOLLOW_DISTANCE

    def update(self, engine: TrafficEngine, dt: float) -> None:
        """Advance the animation by ``dt`` logical seconds."""

        snapshot = engine.snapshot()
        if snapshot is None:
            return

        self._handle_events(engine)
        self._spawn_from_backlog(engine, snapshot)

        moves = [(vehicle, self._can_move(vehicle, snapshot)) for vehicle in self.vehicles]
        for vehicle, can_move in moves:
            vehicle.advance(dt, can_move)

        kept: List[CosmeticVehicle] = []
        for vehicle in self.vehicles:
            if vehicle.on_screen():
                kept.append(vehicle)
            else:
                engine.notify(VehicleCleared(vehicle.lane, emergency=vehicle.emergency))
        self.vehicles = kept

    def counts(self) -> Dict[str, int]:
        return {lane: sum(1 for v in self.vehicles if v.lane == lane) for lane in LANES}
