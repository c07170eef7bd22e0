"""Stochastic vehicle arrivals with a bursty platoon regime."""

from __future__ import annotations

import random

from .config import TrafficConfig
from .environment import LANES, EnvironmentState


class ArrivalGenerator:
    """Roll arrivals for every lane once per tick.

    Outside of a burst each lane uses ``arrival_probability / speed`` and may
    start a new burst.  During a burst the lane uses ``burst_probability``
    undivided, which models a platoon rather than a per-second rate.
    """

    def __init__(self, config: TrafficConfig, rng: random.Random) -> None:
        self.config = config
        self.rng = rng

    def _arrival_probability(self, env: EnvironmentState, lane: str, speed: float) -> float:
        if env.bursts[lane] > 0:
            env.bursts[lane] -= 1
            return self.config.burst_probability

        if self.rng.random() < self.config.burst_start_probability / speed:
            env.bursts[lane] = self.rng.randrange(
                self.config.burst_min_ticks, self.config.burst_max_ticks
            )
        return self.config.arrival_probability / speed

    def tick(self, env: EnvironmentState, speed: float = 1.0) -> int:
        """Apply arrivals, refresh phase pressure and return the arrival count."""

        arrivals = 0
        for name in LANES:
            lane = env.lanes[name]
            probability = self._arrival_probability(env, name, speed)
            arrived = self.rng.random() < probability
            if arrived:
                lane.queue += 1
                env.visual_queue[name] += 1
                arrivals += 1
            lane.record_arrival(arrived)

        env.compute_pressure()
        return arrivals
