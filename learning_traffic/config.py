"""Configuration dataclasses for the learning traffic signal system."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal


ModeLiteral = Literal["headless", "pygame"]

DEFAULT_STATE_PATH = Path("~/.learning_traffic/state.json")


@dataclass(slots=True)
class TrafficConfig:
    """Runtime configuration for :class:`learning_traffic.engine.TrafficEngine`.

    Parameters
    ----------
    mode:
        Operating mode. ``"headless"`` advances the engine without a window and
        reports progress through the console renderer, ``"pygame"`` animates
        the intersection.
    arrival_probability:
        Per-second probability that a vehicle joins a lane outside of a burst.
    max_pass:
        Vehicles released per green lane and tick.
    min_green_time:
        Ticks a phase must stay green before the agent or anyone else may
        switch it.
    burst_probability, burst_start_probability, burst_min_ticks, burst_max_ticks:
        Platoon regime.  A burst lasts ``randrange(burst_min_ticks,
        burst_max_ticks)`` ticks during which arrivals use
        ``burst_probability``.
    emergency_probability, emergency_ticks, emergency_timeout, crash_probability:
        Emergency vehicle spawn rate per second, initial countdown, the
        (negative) countdown bound at which a stuck episode is dropped and the
        chance of a collision while the emergency lane is red and the crossing
        approach has queued traffic.
    pressure_threshold:
        Pressure difference beyond which one phase group counts as dominant.
    epsilon, alpha, gamma:
        Exploration rate, learning rate and discount factor of the agent.
    sim_speed:
        Logical ticks per wall-clock second (``>= 1``).
    state_path:
        JSON file holding the learned Q-table and the session timer.
    autosave_interval:
        Wall-clock seconds between automatic saves.
    """

    mode: ModeLiteral = "headless"
    arrival_probability: float = 0.2
    max_pass: int = 3
    min_green_time: int = 20
    arrival_window: int = 5
    burst_probability: float = 0.8
    burst_start_probability: float = 0.008
    burst_min_ticks: int = 10
    burst_max_ticks: int = 20
    emergency_probability: float = 0.03
    emergency_ticks: int = 5
    emergency_timeout: int = -55
    crash_probability: float = 0.3
    pressure_threshold: int = 3
    epsilon: float = 0.1
    alpha: float = 0.1
    gamma: float = 0.9
    sim_speed: float = 1.0
    state_path: str | Path | None = DEFAULT_STATE_PATH
    autosave_interval: float = 10.0
    extend_log_interval: float = 5.0
    log_history: int = 200

    def __post_init__(self) -> None:
        for name in (
            "arrival_probability",
            "burst_probability",
            "burst_start_probability",
            "emergency_probability",
            "crash_probability",
            "epsilon",
            "alpha",
            "gamma",
        ):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be within [0, 1], got {value!r}")
        if self.min_green_time < 0:
            raise ValueError("min_green_time must not be negative")
        if self.max_pass < 0:
            raise ValueError("max_pass must not be negative")
        if self.arrival_window < 1:
            raise ValueError("arrival_window must be at least 1")
        if self.burst_max_ticks <= self.burst_min_ticks:
            raise ValueError("burst_max_ticks must be greater than burst_min_ticks")
        if self.sim_speed < 1:
            raise ValueError("sim_speed must be at least 1")

    def ensure_paths(self) -> None:
        """Expand the configured state path to an absolute :class:`~pathlib.Path`.

        Callers may pass ``str`` or :class:`~pathlib.Path`, including ``~``
        prefixed values from the command line.  ``None`` disables persistence.
        """

        if self.state_path is not None:
            self.state_path = Path(self.state_path).expanduser().resolve()
