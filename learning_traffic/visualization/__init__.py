"""Presentation collaborators reading engine snapshots."""

from .base import VisualizationStrategy
from .console import ConsoleVisualization
from .world import CosmeticVehicle, IntersectionWorld

__all__ = [
    "ConsoleVisualization",
    "CosmeticVehicle",
    "IntersectionWorld",
    "VisualizationStrategy",
]
