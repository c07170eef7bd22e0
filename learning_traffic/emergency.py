"""Emergency vehicle episodes and their probabilistic crash risk."""

from __future__ import annotations

import logging
import random
from typing import List, NamedTuple

from .config import TrafficConfig
from .environment import LANES, EnvironmentState
from .events import (
    DecisionLog,
    EmergencyRemovalRequested,
    EmergencySpawnRequested,
    EngineEvent,
    LogCategory,
)
from .rewards import RewardEvent, RewardPolicy

logger = logging.getLogger(__name__)


class EmergencyOutcome(NamedTuple):
    """Events emitted by one emergency tick and whether it ended the tick."""

    events: List[EngineEvent]
    tick_ended: bool = False


class EmergencyManager:
    """Spawn, track and resolve at most one emergency vehicle at a time.

    The collision model is a tunable risk signal, not geometry: while the
    emergency lane is red and the crossing approach has anybody queued, each
    tick collides with ``crash_probability``.
    """

    def __init__(
        self,
        config: TrafficConfig,
        rewards: RewardPolicy,
        rng: random.Random,
        log: DecisionLog,
    ) -> None:
        self.config = config
        self.rewards = rewards
        self.rng = rng
        self.log = log

    def _maybe_spawn(self, env: EnvironmentState, speed: float, events: List[EngineEvent]) -> None:
        if env.emergency.active:
            return
        if self.rng.random() >= self.config.emergency_probability / speed:
            return

        lane = self.rng.choice(LANES)
        env.emergency.activate(lane, self.config.emergency_ticks)
        events.append(EmergencySpawnRequested(lane))
        self.log.record(env.time, f"[ALERT] Ambulance approaching on {lane.upper()}!", LogCategory.ALERT)

    def _resolve(self, env: EnvironmentState) -> None:
        emergency = env.emergency
        stats = env.emergency_stats
        if not emergency.crashed:
            stats.crossed += 1
            if emergency.did_wait:
                stats.waited += 1
        logger.debug("Emergency on %s cleared the intersection", emergency.lane)
        emergency.deactivate()

    def _crash(self, env: EnvironmentState, lane: str, events: List[EngineEvent]) -> None:
        emergency = env.emergency
        env.add_reward(self.rewards, RewardEvent.AMBULANCE_CRASH)
        env.emergency_stats.crashed += 1
        emergency.crashed = True
        emergency.deactivate()
        events.append(EmergencyRemovalRequested(lane))
        self.log.record(env.time, "[CRASH] Ambulance collided!", LogCategory.ALERT)

    def tick(self, env: EnvironmentState, speed: float = 1.0) -> EmergencyOutcome:
        """Advance the emergency state machine by one tick.

        A resolution or a crash ends the whole engine tick, which the outcome
        reports through ``tick_ended``.  The failsafe timeout does not.
        """

        events: List[EngineEvent] = []
        self._maybe_spawn(env, speed, events)

        emergency = env.emergency
        lane = emergency.lane
        if not emergency.active or lane is None:
            return EmergencyOutcome(events)

        if not emergency.visual_pending and emergency.visible_vehicles == 0:
            self._resolve(env)
            return EmergencyOutcome(events, tick_ended=True)

        if env.lanes[lane].green:
            env.add_reward(self.rewards, RewardEvent.AMBULANCE_PASSED)
        else:
            emergency.did_wait = True
            env.add_reward(self.rewards, RewardEvent.AMBULANCE_WAITING)
            if env.crossing_has_traffic(lane) and self.rng.random() < self.config.crash_probability:
                self._crash(env, lane, events)
                return EmergencyOutcome(events, tick_ended=True)

        emergency.ticks_remaining -= 1
        if emergency.ticks_remaining <= self.config.emergency_timeout:
            logger.warning("Emergency on %s timed out, dropping it", lane)
            emergency.deactivate()
            events.append(EmergencyRemovalRequested(lane))
        return EmergencyOutcome(events)
