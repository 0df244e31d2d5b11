"""Order-statistic helpers shared by the simulators.

Percentiles follow the nearest-rank-below convention used throughout the
engine: on an ascending sample of size n, the q-quantile is ``v[floor(n*q)]``
(clamped to the last element). The integer argument check the engines share
lives here too.
"""

import math

import numpy as np

from valuecast.errors import ValidationError


def percentile_at(sorted_values: np.ndarray, q: float) -> float:
    n = len(sorted_values)
    idx = min(int(math.floor(n * q)), n - 1)
    return float(sorted_values[idx])


def percentiles(sorted_values: np.ndarray, levels: dict[str, float]) -> dict[str, float]:
    return {key: percentile_at(sorted_values, q) for key, q in levels.items()}


def symmetric_interval(sorted_values: np.ndarray, confidence_level: float) -> list[float]:
    """Central interval holding ``confidence_level`` of the sample."""
    n = len(sorted_values)
    lower = int(math.floor(n * (1.0 - confidence_level) / 2.0))
    upper = min(int(math.floor(n * (1.0 + confidence_level) / 2.0)), n - 1)
    return [float(sorted_values[lower]), float(sorted_values[upper])]


def moments(values: np.ndarray) -> tuple[float, float, float]:
    """Mean, population variance and standard deviation."""
    mean = float(np.mean(values))
    variance = float(np.mean((values - mean) ** 2))
    return mean, variance, math.sqrt(variance)


def all_finite(values: np.ndarray) -> bool:
    return bool(np.all(np.isfinite(values)))


def require_positive_int(name: str, value) -> None:
    """Raise ValidationError unless ``value`` is a positive int (NumPy ints included, bools not)."""
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value <= 0:
        raise ValidationError(f"{name} must be a positive integer, got {value!r}")
