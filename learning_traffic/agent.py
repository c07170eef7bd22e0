"""Tabular Q-learning agent driving the phase decisions."""

from __future__ import annotations

import logging
import random
from enum import Enum
from typing import Dict, Iterator, Mapping, NamedTuple, Optional, Tuple

import numpy as np

from .config import TrafficConfig
from .controller import PhaseController
from .environment import EnvironmentState, Phase
from .events import DecisionLog, LogCategory

logger = logging.getLogger(__name__)


class Action(str, Enum):
    EXTEND = "EXTEND"
    SWITCH = "SWITCH"


class PressureClass(str, Enum):
    HIGH_NS = "HIGH_NS"
    HIGH_EW = "HIGH_EW"
    BALANCED = "BALANCED"


class EmergencyFlag(str, Enum):
    AMB = "AMB"
    NONE = "NONE"


ACTIONS: Tuple[Action, ...] = tuple(Action)
_PHASES: Tuple[Phase, ...] = tuple(Phase)
_PRESSURES: Tuple[PressureClass, ...] = tuple(PressureClass)
_FLAGS: Tuple[EmergencyFlag, ...] = tuple(EmergencyFlag)


class StateKey(NamedTuple):
    """Discretized observation ``phase x pressure class x emergency flag``."""

    phase: Phase
    pressure: PressureClass
    emergency: EmergencyFlag

    def __str__(self) -> str:
        return f"{self.phase.value}_{self.pressure.value}_{self.emergency.value}"

    @property
    def cell(self) -> Tuple[int, int, int]:
        return (
            _PHASES.index(self.phase),
            _PRESSURES.index(self.pressure),
            _FLAGS.index(self.emergency),
        )

    @classmethod
    def parse(cls, text: str) -> "StateKey":
        """Parse the serialized ``"NS_HIGH_NS_AMB"`` form.

        Raises :class:`ValueError` for unknown keys.
        """

        phase, _, rest = text.partition("_")
        pressure, _, flag = rest.rpartition("_")
        return cls(Phase(phase), PressureClass(pressure), EmergencyFlag(flag))


def classify_pressure(difference: int, threshold: int = 3) -> PressureClass:
    if difference > threshold:
        return PressureClass.HIGH_NS
    if difference < -threshold:
        return PressureClass.HIGH_EW
    return PressureClass.BALANCED


def observe(env: EnvironmentState, threshold: int = 3) -> StateKey:
    """Discretize ``env`` into the key used by the Q-table."""

    return StateKey(
        env.phase,
        classify_pressure(env.pressure_difference, threshold),
        EmergencyFlag.AMB if env.emergency.active else EmergencyFlag.NONE,
    )


class QTable:
    """Action values over the closed state space, backed by a numpy array.

    Entries count as initialized once touched; only those are reported by
    ``len`` and serialized, so a saved table lists the states actually seen.
    """

    def __init__(self) -> None:
        shape = (len(_PHASES), len(_PRESSURES), len(_FLAGS))
        self.values = np.zeros(shape + (len(ACTIONS),), dtype=float)
        self.visited = np.zeros(shape, dtype=bool)

    def __len__(self) -> int:
        return int(self.visited.sum())

    def __contains__(self, key: StateKey) -> bool:
        return bool(self.visited[key.cell])

    def keys(self) -> Iterator[StateKey]:
        for phase in _PHASES:
            for pressure in _PRESSURES:
                for flag in _FLAGS:
                    key = StateKey(phase, pressure, flag)
                    if key in self:
                        yield key

    def row(self, key: StateKey) -> np.ndarray:
        """Return the (mutable) action values of ``key``, initializing it."""

        index = key.cell
        self.visited[index] = True
        return self.values[index]

    def get(self, key: StateKey, action: Action) -> float:
        return float(self.row(key)[ACTIONS.index(action)])

    def best_value(self, key: StateKey) -> float:
        return float(np.max(self.row(key)))

    def best_action(self, key: StateKey) -> Action:
        row = self.row(key)
        # ties favour EXTEND
        return Action.EXTEND if row[0] >= row[1] else Action.SWITCH

    def to_dict(self) -> Dict[str, Dict[str, float]]:
        return {
            str(key): {action.value: self.get(key, action) for action in ACTIONS}
            for key in self.keys()
        }

    def merge(self, data: Mapping[str, Mapping[str, object]]) -> int:
        """Replace in-memory entries with the serialized ones in ``data``.

        Unknown keys and malformed values are skipped.  Returns the number of
        merged states.
        """

        merged = 0
        for text, entry in data.items():
            try:
                key = StateKey.parse(text)
                values = [float(entry[action.value]) for action in ACTIONS]  # type: ignore[arg-type]
            except (KeyError, TypeError, ValueError):
                logger.warning("Skipping malformed Q-table entry %r", text)
                continue
            self.row(key)[:] = values
            merged += 1
        return merged


class QLearningAgent:
    """Epsilon-greedy one-step Q-learning over :class:`StateKey` observations.

    The agent only acts at decision points, i.e. once the current phase has
    been green for ``min_green_time`` ticks.  The reward fed into each update
    is the change of the cumulative reward since the previous decision point,
    which folds in everything that happened while the phase was extended.
    """

    def __init__(
        self,
        config: TrafficConfig,
        controller: PhaseController,
        rng: random.Random,
        log: DecisionLog,
        table: QTable | None = None,
    ) -> None:
        self.epsilon = config.epsilon
        self.alpha = config.alpha
        self.gamma = config.gamma
        self.pressure_threshold = config.pressure_threshold
        self.controller = controller
        self.rng = rng
        self.log = log
        self.table = table if table is not None else QTable()
        self.prev_state: Optional[StateKey] = None
        self.prev_action: Optional[Action] = None
        self.prev_reward = 0.0

    def reset_episode(self) -> None:
        self.prev_state = None
        self.prev_action = None
        self.prev_reward = 0.0

    def choose_action(self, state: StateKey) -> Action:
        self.table.row(state)
        if self.rng.random() < self.epsilon:
            return Action.EXTEND if self.rng.random() < 0.5 else Action.SWITCH
        return self.table.best_action(state)

    def update(self, state: StateKey, action: Action, reward: float, next_state: StateKey) -> float:
        """Apply the Bellman backup and return the new estimate."""

        row = self.table.row(state)
        column = ACTIONS.index(action)
        target = reward + self.gamma * self.table.best_value(next_state)
        row[column] += self.alpha * (target - row[column])
        return float(row[column])

    def act(self, env: EnvironmentState) -> Action | None:
        """Decide for the current tick; returns ``None`` outside decision points."""

        if not self.controller.can_switch(env):
            return None

        state = observe(env, self.pressure_threshold)
        action = self.choose_action(state)
        reward = env.cumulative_reward - self.prev_reward

        if self.prev_state is not None and self.prev_action is not None:
            self.update(self.prev_state, self.prev_action, reward, state)

        if action is Action.SWITCH:
            target = env.phase.opposite
            self.controller.switch_to(env, target)
            self.log.record(env.time, f"[Q-LEARN] Action: SWITCH to {target.value}", LogCategory.SWITCH)
        else:
            self.log.record(env.time, f"[Q-LEARN] Action: EXTEND {env.phase.value}", LogCategory.EXTEND)

        self.prev_state = state
        self.prev_action = action
        self.prev_reward = env.cumulative_reward
        return action
