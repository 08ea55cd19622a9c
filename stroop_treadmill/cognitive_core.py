from __future__ import annotations

import math
import random
from enum import Enum
from typing import TypeVar

T = TypeVar("T")


class Phase(str, Enum):
    SETUP = "setup"
    PRACTICE = "practice"
    TEST = "test"
    DONE = "done"


class SeededRng:
    """RNG wrapper that keeps random streams explicit.

    ``seed=None`` draws from OS entropy, so every run gets an independent
    sequence. Tests pass an integer seed to make streams repeatable.
    """

    def __init__(self, seed: int | None = None) -> None:
        self._rng = random.Random(None if seed is None else int(seed))

    def random(self) -> float:
        return self._rng.random()

    def randint(self, a: int, b: int) -> int:
        return self._rng.randint(a, b)

    def choice(self, seq: list[T] | tuple[T, ...]) -> T:
        return self._rng.choice(seq)

    def uniform(self, a: float, b: float) -> float:
        return self._rng.uniform(a, b)

    def shuffle(self, values: list[T]) -> list[T]:
        # In-place Fisher-Yates, returned for chaining.
        for i in range(len(values) - 1, 0, -1):
            j = int(self._rng.randint(0, i))
            values[i], values[j] = values[j], values[i]
        return values


def clamp01(x: float) -> float:
    return 0.0 if x <= 0.0 else 1.0 if x >= 1.0 else float(x)


def round_half_up(x: float) -> int:
    # Matches the usual "0.5 rounds up" rule used for displayed ms and percents.
    return int(math.floor(x + 0.5))
