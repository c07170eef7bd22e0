"""Phase controller enforcing the minimum green time."""

from __future__ import annotations

from .environment import EnvironmentState, Phase
from .events import DecisionLog, LogCategory
from .rewards import RewardEvent, RewardPolicy


class PhaseController:
    """Gatekeeper for phase transitions.

    * A phase stays green for at least ``min_green_time`` ticks, which keeps
      the learner from thrashing between phases.
    * Switching to the already active phase is ignored.
    * An accepted switch flips every lane's signal atomically and costs
      ``PHASE_SWITCH`` unless an emergency is in progress.

    Rejections are ordinary gating and are reported by returning ``False``.
    """

    def __init__(self, min_green_time: int, rewards: RewardPolicy, log: DecisionLog) -> None:
        self.min_green_time = min_green_time
        self.rewards = rewards
        self.log = log

    def can_switch(self, env: EnvironmentState) -> bool:
        return env.ticks_since_switch >= self.min_green_time

    def switch_to(self, env: EnvironmentState, phase: Phase) -> bool:
        if not self.can_switch(env):
            return False
        if env.phase is phase:
            return False

        env.apply_phase(phase)
        env.ticks_since_switch = 0
        self.log.record(env.time, f"[SWITCH] Switched to {phase.value}", LogCategory.SWITCH)

        # free while an emergency vehicle is on its way
        if not env.emergency.active:
            env.add_reward(self.rewards, RewardEvent.PHASE_SWITCH)
        return True
