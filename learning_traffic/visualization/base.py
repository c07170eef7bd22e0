"""Visualization strategy abstractions."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict


class VisualizationStrategy(ABC):
    """Render a read-only snapshot of the engine.

    ``context`` carries the :class:`~learning_traffic.environment.EngineSnapshot`
    under ``"snapshot"``, the cosmetic world under ``"world"`` and the most
    recent decision log entries under ``"log"``.
    """

    @abstractmethod
    def render(self, context: Dict[str, object]) -> None:
        """Render the intersection using the provided context."""

    @abstractmethod
    def close(self) -> None:
        """Dispose of any resources such as windows or surfaces."""
