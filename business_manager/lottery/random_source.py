"""
Random sources for the draw

Every random choice the draw makes goes through `RandomSource.pick`,
so tests can script the outcome and production can use the OS
entropy pool.
"""

import random
from typing import Optional, Protocol


class RandomSource(Protocol):
    def pick(self, n: int) -> int:
        """Return an index uniformly distributed over [0, n)."""
        ...


class SystemRandomSource:
    """
    Uniform picks from a `random.Random`.

    Defaults to `random.SystemRandom`. Pass `random.Random(seed)` for a
    reproducible sequence.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.SystemRandom()

    def pick(self, n: int) -> int:
        if n <= 0:
            raise ValueError("Cannot pick from an empty set")
        return self._rng.randrange(n)
