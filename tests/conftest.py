from pathlib import Path
import sys
from typing import Iterable, List, Sequence

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest

from learning_traffic.events import DecisionLog


class FakeClock:
    def __init__(self, start: float = 0.0, step: float = 0.0) -> None:
        self.current = start
        self.step = step

    def __call__(self) -> float:
        value = self.current
        self.current += self.step
        return value

    def advance(self, seconds: float) -> None:
        self.current += seconds


class ScriptedRandom:
    """Stand-in for :class:`random.Random` replaying scripted draws.

    ``random()`` pops queued values and falls back to ``default`` once they
    run out; ``choice``, ``randrange`` and ``uniform`` are deterministic.
    """

    def __init__(
        self,
        values: Iterable[float] = (),
        default: float = 0.99,
        choice_index: int = 0,
    ) -> None:
        self.values: List[float] = list(values)
        self.default = default
        self.choice_index = choice_index
        self.draws = 0

    def push(self, *values: float) -> None:
        self.values.extend(values)

    def random(self) -> float:
        self.draws += 1
        if self.values:
            return self.values.pop(0)
        return self.default

    def choice(self, seq: Sequence):
        return seq[self.choice_index]

    def randrange(self, start: int, stop: int) -> int:
        return start

    def uniform(self, a: float, b: float) -> float:
        return a


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def decision_log(clock: FakeClock) -> DecisionLog:
    return DecisionLog(time_func=clock)
