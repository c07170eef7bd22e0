"""Tick driver tying the engine components together."""

from __future__ import annotations

import logging
import math
import random
from typing import Callable, List, Optional

from .agent import QLearningAgent, QTable
from .arrivals import ArrivalGenerator
from .config import TrafficConfig
from .controller import PhaseController
from .emergency import EmergencyManager
from .environment import EngineSnapshot, EnvironmentState
from .events import (
    DecisionLog,
    EngineEvent,
    LogCategory,
    PresentationMessage,
    VehicleCleared,
    VehicleSpawned,
)
from .persistence import StateStore
from .rewards import RewardPolicy

logger = logging.getLogger(__name__)

Listener = Callable[[EngineSnapshot], None]


def parse_speed(raw: object) -> float:
    """Parse a speed multiplier; anything invalid or below 1 becomes ``>= 1``."""

    try:
        value = float(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 1.0
    if math.isnan(value) or math.isinf(value):
        return 1.0
    return max(1.0, value)


class TrafficEngine:
    """Own the environment and advance it one logical tick per :meth:`step`.

    Each tick runs the emergency manager, the arrival generator, queue
    release, the agent and finally the statistics aggregation, strictly in that
    order and on the calling thread.  A tick in which the emergency resolves
    or crashes stops right after the emergency manager, without advancing the
    clock.  The single ``rng`` passed in is shared by every stochastic
    component so a seeded or scripted source makes whole runs reproducible.
    """

    def __init__(
        self,
        config: TrafficConfig | None = None,
        *,
        rewards: RewardPolicy | None = None,
        rng: random.Random | None = None,
        store: StateStore | None = None,
        log: DecisionLog | None = None,
        table: QTable | None = None,
    ) -> None:
        self.config = config or TrafficConfig()
        self.rewards = rewards or RewardPolicy()
        self.rng = rng or random.Random()
        self.store = store
        if log is None:
            log = DecisionLog(
                max_entries=self.config.log_history,
                extend_interval=self.config.extend_log_interval,
            )
        self.log = log
        self.sim_speed = parse_speed(self.config.sim_speed)
        self.total_session_time = 0
        self._paused = False
        self._events: List[EngineEvent] = []
        self._listeners: List[Listener] = []

        self.controller = PhaseController(self.config.min_green_time, self.rewards, self.log)
        self.arrivals = ArrivalGenerator(self.config, self.rng)
        self.emergencies = EmergencyManager(self.config, self.rewards, self.rng, self.log)
        self.agent = QLearningAgent(self.config, self.controller, self.rng, self.log, table)

        self.env: Optional[EnvironmentState] = None
        self.reset()

    @property
    def table(self) -> QTable:
        return self.agent.table

    @property
    def paused(self) -> bool:
        return self._paused

    def set_paused(self, paused: bool) -> None:
        self._paused = paused
        logger.info("Simulation %s", "paused" if paused else "resumed")

    def toggle_pause(self) -> bool:
        self.set_paused(not self._paused)
        return self._paused

    def set_speed(self, raw: object) -> float:
        self.sim_speed = parse_speed(raw)
        return self.sim_speed

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def reset(self) -> None:
        """Rebuild the environment; learned values and session time survive."""

        self.env = EnvironmentState.fresh(window=self.config.arrival_window)
        self.agent.reset_episode()
        self._events.clear()
        self.log.clear()
        self.log.record(0, "Simulation reset", LogCategory.NORMAL)

    def step(self) -> bool:
        """Advance one logical tick.

        Returns ``True`` when the clock advanced.  A paused engine does
        nothing and returns ``False``; so does a tick cut short by an
        emergency resolving or crashing, after its outcome is recorded.
        """

        env = self.env
        if self._paused or env is None:
            return False

        speed = self.sim_speed
        outcome = self.emergencies.tick(env, speed)
        self._events.extend(outcome.events)

        advanced = not outcome.tick_ended
        if advanced:
            self.arrivals.tick(env, speed)
            env.release_green_queues(self.rewards, self.config.max_pass)
            self.agent.act(env)
            env.aggregate_waiting(self.rewards)

            env.time += 1
            env.ticks_since_switch += 1
            self.total_session_time += 1

        if self._listeners:
            snapshot = self.snapshot()
            for listener in self._listeners:
                listener(snapshot)
        return advanced

    def run_second(self, limit: Optional[int] = None) -> int:
        """Run the ticks belonging to one wall-clock second.

        At most ``limit`` ticks run when given.  Returns how many of them
        advanced the clock.
        """

        if self._paused:
            return 0
        count = math.ceil(self.sim_speed)
        if limit is not None:
            count = min(count, max(0, limit))
        advanced = 0
        for _ in range(count):
            if self.step():
                advanced += 1
        return advanced

    def notify(self, message: PresentationMessage) -> None:
        """Apply a message from the presentation layer."""

        env = self.env
        if env is None or message.lane not in env.lanes:
            return

        emergency = env.emergency
        if isinstance(message, VehicleSpawned):
            if message.emergency:
                if not emergency.active:
                    logger.debug("Ignoring emergency vehicle on %s without an episode", message.lane)
                    return
                emergency.visual_pending = False
                emergency.visible_vehicles += 1
            else:
                env.consume_visual(message.lane)
        elif isinstance(message, VehicleCleared) and message.emergency:
            emergency.visible_vehicles = max(0, emergency.visible_vehicles - 1)

    def drain_events(self) -> List[EngineEvent]:
        events, self._events = self._events, []
        return events

    def snapshot(self) -> Optional[EngineSnapshot]:
        if self.env is None:
            return None
        return EngineSnapshot.capture(
            self.env,
            session_time=self.total_session_time,
            paused=self._paused,
            sim_speed=self.sim_speed,
        )

    def load_state(self) -> int:
        """Merge a previously saved Q-table and timer; returns merged states."""

        if self.store is None:
            return 0
        saved = self.store.load()
        merged = self.table.merge(saved.q_table)
        self.total_session_time = saved.session_time
        return merged

    def save_state(self) -> bool:
        if self.store is None:
            return False
        return self.store.save(self.table.to_dict(), self.total_session_time)

    def clear_saved_state(self) -> bool:
        """Forget the persisted table and timer (the in-memory table is kept)."""

        if self.store is None:
            return False
        self.total_session_time = 0
        return self.store.clear()
