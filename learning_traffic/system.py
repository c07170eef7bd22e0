"""High level orchestration of the learning traffic signal system."""

from __future__ import annotations

import logging
import random
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional

from .config import TrafficConfig
from .engine import TrafficEngine
from .persistence import StateStore
from .rewards import RewardPolicy
from .visualization.base import VisualizationStrategy
from .visualization.console import ConsoleVisualization
from .visualization.pygame_view import PygameVisualization
from .visualization.world import IntersectionWorld

logger = logging.getLogger(__name__)


class ModeStrategy(ABC):
    """Strategy pattern implementation for running different modes.

    Both modes share the same wall-clock cadence: once per wall-clock second
    the engine runs ``ceil(sim_speed)`` ticks, the cosmetic world animates in
    between and the learned table is saved every ``autosave_interval``
    seconds.
    """

    def __init__(
        self,
        engine: TrafficEngine,
        config: TrafficConfig,
        time_func: Callable[[], float] | None = None,
        world: IntersectionWorld | None = None,
    ) -> None:
        self.engine = engine
        self.config = config
        self.time_func = time_func or time.monotonic
        self.world = world or IntersectionWorld()
        self._running = True
        self._last_save = self.time_func()

    def _context(self) -> Dict[str, object]:
        return {
            "snapshot": self.engine.snapshot(),
            "world": self.world,
            "log": self.engine.log.tail(12),
        }

    def _autosave_if_due(self) -> None:
        now = self.time_func()
        if now - self._last_save >= self.config.autosave_interval:
            self.engine.save_state()
            self._last_save = now

    def apply_command(self, command: str) -> None:
        """Apply a user command (pause, reset, faster, slower, save, quit)."""

        if command == "pause":
            self.engine.toggle_pause()
        elif command == "reset":
            self.engine.reset()
            self.world.clear()
        elif command == "faster":
            self.engine.set_speed(self.engine.sim_speed + 1)
        elif command == "slower":
            self.engine.set_speed(self.engine.sim_speed - 1)
        elif command == "save":
            self.engine.save_state()
        elif command == "quit":
            self._running = False
        else:
            logger.warning("Ignoring unknown command %r", command)

    @abstractmethod
    def run(self, max_ticks: Optional[int] = None) -> None:
        """Execute the strategy main loop."""

    @abstractmethod
    def close(self) -> None:
        """Clean up resources used by the strategy."""


class HeadlessModeStrategy(ModeStrategy):
    """Advance the engine as fast as possible and report via logging."""

    def __init__(
        self,
        engine: TrafficEngine,
        config: TrafficConfig,
        visualization: VisualizationStrategy | None = None,
        frames_per_second: int = 10,
        time_func: Callable[[], float] | None = None,
        world: IntersectionWorld | None = None,
    ) -> None:
        super().__init__(engine, config, time_func, world)
        self.visualization = visualization or ConsoleVisualization()
        self.frames_per_second = max(1, frames_per_second)

    def run(self, max_ticks: Optional[int] = None) -> None:
        executed = 0
        while self._running and (max_ticks is None or executed < max_ticks):
            if self.engine.paused:
                break
            remaining = None if max_ticks is None else max_ticks - executed
            executed += self.engine.run_second(remaining)

            dt = self.engine.sim_speed / self.frames_per_second
            for _ in range(self.frames_per_second):
                self.world.update(self.engine, dt)
            self.visualization.render(self._context())
            self._autosave_if_due()
        logger.info("Headless run finished after %d ticks", executed)

    def close(self) -> None:
        self._running = False
        self.visualization.close()


class PygameModeStrategy(ModeStrategy):
    """Animate the intersection with pygame and accept keyboard commands."""

    def __init__(
        self,
        engine: TrafficEngine,
        config: TrafficConfig,
        world: IntersectionWorld | None = None,
    ) -> None:
        super().__init__(engine, config, time.monotonic, world)
        self.visualization = PygameVisualization()
        self._last_time = time.perf_counter()
        self._accumulator = 0.0

    def run(self, max_ticks: Optional[int] = None) -> None:  # pragma: no cover - requires pygame event loop
        executed = 0
        while self._running and (max_ticks is None or executed < max_ticks):
            now = time.perf_counter()
            dt = now - self._last_time
            self._last_time = now

            if not self.engine.paused:
                self._accumulator += dt
                while self._accumulator >= 1.0:
                    self._accumulator -= 1.0
                    remaining = None if max_ticks is None else max_ticks - executed
                    executed += self.engine.run_second(remaining)
                self.world.update(self.engine, dt * self.engine.sim_speed)

            self.visualization.render(self._context())
            for command in self.visualization.poll_commands():
                self.apply_command(command)
            self._autosave_if_due()

    def close(self) -> None:
        self._running = False
        self.visualization.close()


class TrafficSystem:
    """Main entry point wiring configuration, engine, storage and mode."""

    def __init__(
        self,
        config: TrafficConfig,
        rewards: RewardPolicy | None = None,
        seed: Optional[int] = None,
    ) -> None:
        config.ensure_paths()
        self.config = config
        store = StateStore(config.state_path) if config.state_path is not None else None
        self.engine = TrafficEngine(
            config,
            rewards=rewards,
            rng=random.Random(seed),
            store=store,
        )
        merged = self.engine.load_state()
        if merged:
            logger.info("Continuing from %d learned states", merged)

        world = IntersectionWorld(rng=random.Random(seed))
        if config.mode == "pygame":
            self.strategy: ModeStrategy = PygameModeStrategy(self.engine, config, world)
        else:
            self.strategy = HeadlessModeStrategy(self.engine, config, world=world)

    def run(self, max_ticks: Optional[int] = None) -> None:
        """Run the configured strategy until interrupted or ``max_ticks`` ran."""

        try:
            self.strategy.run(max_ticks)
        except KeyboardInterrupt:
            logger.info("Traffic system interrupted by user")
        finally:
            self.strategy.close()
            self.engine.save_state()
