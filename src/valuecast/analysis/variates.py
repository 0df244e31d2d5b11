"""Standard-normal variate generation (Box-Muller transform).

The generator wraps a NumPy uniform source. Production code uses fresh OS
entropy; tests and reproducible runs inject ``RandomVariateGenerator.seeded``.
"""

import logging
from typing import Protocol

import numpy as np

logger = logging.getLogger(__name__)

TWO_PI = 2.0 * np.pi


class VariateSource(Protocol):
    """Anything that can hand out N(0, 1) draws."""

    def next(self) -> float:
        ...

    def draw(self, size: int | tuple[int, ...]) -> np.ndarray:
        ...


class RandomVariateGenerator:
    """Box-Muller standard-normal generator.

    Each instance owns its uniform source, so separate instances never share
    state. ``next()`` returns a single draw; ``draw(size)`` applies the same
    transform to whole arrays for the vectorised simulators.
    """

    def __init__(self, rng: np.random.Generator | None = None):
        self._rng = rng if rng is not None else np.random.default_rng()

    @classmethod
    def seeded(cls, seed: int) -> "RandomVariateGenerator":
        return cls(np.random.default_rng(seed))

    def _uniform(self) -> float:
        u = 0.0
        while u == 0.0:
            u = float(self._rng.random())
        return u

    def next(self) -> float:
        u1 = self._uniform()
        u2 = self._uniform()
        return float(np.sqrt(-2.0 * np.log(u1)) * np.cos(TWO_PI * u2))

    def draw(self, size: int | tuple[int, ...]) -> np.ndarray:
        u1 = self._uniform_array(size)
        u2 = self._uniform_array(size)
        return np.sqrt(-2.0 * np.log(u1)) * np.cos(TWO_PI * u2)

    def _uniform_array(self, size: int | tuple[int, ...]) -> np.ndarray:
        u = self._rng.random(size)
        zeros = u == 0.0
        # Generator.random() is [0, 1); redraw the exact zeros
        while np.any(zeros):
            logger.debug("Redrawing %d zero uniforms", int(np.sum(zeros)))
            u[zeros] = self._rng.random(int(np.sum(zeros)))
            zeros = u == 0.0
        return u


def default_variates(seed: int | None = None) -> RandomVariateGenerator:
    """Fresh generator; seeded only when a seed is configured."""
    if seed is None:
        return RandomVariateGenerator()
    return RandomVariateGenerator.seeded(seed)
