"""Q-learning traffic signal control for a simulated four-way intersection."""

from .config import TrafficConfig
from .engine import TrafficEngine
from .rewards import RewardEvent, RewardPolicy
from .system import TrafficSystem

__all__ = [
    "RewardEvent",
    "RewardPolicy",
    "TrafficConfig",
    "TrafficEngine",
    "TrafficSystem",
]
