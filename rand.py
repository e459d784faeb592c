"""
Random sources consumed by the simulation.

The engine only ever calls ``next_int()`` and reduces the result with
``% n`` itself, so any source producing non-negative integers works.
Call order is part of the replay contract:

  1. boldness draw, left player then right player (construction and every new round)
  2. computer standby resample (``% 20`` then ``% 2``)
  3. computer power-hit grid order coin flip (``% 2``)
  4. zero x-velocity kick on a ball-player hit (``% 3``)
"""

import random
from typing import Iterable, List, Protocol

RAND_MAX: int = 0x7FFF  # 15-bit outputs, like the C library rand()


class RandomSequenceExhausted(RuntimeError):
    """A SequenceRandom was asked for more values than it was given."""


class RandomSource(Protocol):
    def next_int(self) -> int:
        ...


class SeededRandom:
    """Deterministic 15-bit integer stream built on ``random.Random``."""

    def __init__(self, seed: int = 0):
        self.seed = seed
        self._rng = random.Random(seed)
        self.draws = 0

    def next_int(self) -> int:
        self.draws += 1
        return self._rng.randint(0, RAND_MAX)


class SequenceRandom:
    """Replays a fixed list of integers, e.g. a recorded session."""

    def __init__(self, values: Iterable[int]):
        self.values: List[int] = [int(v) for v in values]
        self.draws = 0

    def next_int(self) -> int:
        if self.draws >= len(self.values):
            raise RandomSequenceExhausted(
                f"random sequence exhausted after {len(self.values)} values")
        value = self.values[self.draws]
        self.draws += 1
        return value

    @property
    def remaining(self) -> int:
        return len(self.values) - self.draws


class RecordingRandom:
    """Wraps another source and remembers every value it handed out."""

    def __init__(self, source: RandomSource):
        self.source = source
        self.history: List[int] = []

    def next_int(self) -> int:
        value = self.source.next_int()
        self.history.append(value)
        return value
