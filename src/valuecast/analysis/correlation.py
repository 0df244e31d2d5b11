"""Correlated scenario analysis.

Scenario drivers rarely move independently. Each trial draws one normal per
scenario, correlates them through the Cholesky factor of the scenario
correlation matrix, and lets every scenario with a positive draw push the
base case by its probability-weighted impact.
"""

import logging
import math
from typing import Callable, Sequence

import numpy as np

from valuecast.analysis.models import BaseCase, MetricStatistics, Scenario, ScenarioAnalysisResult
from valuecast.analysis.stats import (
    all_finite,
    moments,
    percentiles,
    require_positive_int,
    symmetric_interval,
)
from valuecast.analysis.variates import RandomVariateGenerator, VariateSource
from valuecast.errors import (
    CalculationCancelled,
    ComputationError,
    NotPositiveSemiDefiniteError,
    ValidationError,
)

logger = logging.getLogger(__name__)

DEFAULT_ITERATIONS = 10000
DEFAULT_SAMPLE_SIZE = 100
CANCEL_CHECK_INTERVAL = 1000
SYMMETRY_TOLERANCE = 1e-9
PIVOT_TOLERANCE = 1e-12

METRICS = ("revenue", "margin", "valuation")

ANALYSIS_PERCENTILES = {
    "p5": 0.05,
    "p25": 0.25,
    "p50": 0.50,
    "p75": 0.75,
    "p95": 0.95,
}


def _as_matrix(matrix, ragged_message: str) -> np.ndarray:
    try:
        return np.asarray(matrix, dtype=float)
    except (TypeError, ValueError) as e:
        raise ValidationError(ragged_message) from e


def cholesky(matrix: Sequence[Sequence[float]] | np.ndarray) -> np.ndarray:
    """Lower-triangular L with L·Lᵀ = matrix.

    Positive semi-definite input is accepted: a zero pivot is allowed as long
    as the column below it is also zero. Anything else raises
    NotPositiveSemiDefiniteError instead of producing NaN.
    """
    m = _as_matrix(matrix, "Matrix rows must all have the same length")
    if m.ndim != 2 or m.shape[0] != m.shape[1]:
        raise ValidationError(f"Matrix must be square, got shape {m.shape}")
    if not all_finite(m):
        raise ValidationError("Matrix contains non-finite entries")

    n = m.shape[0]
    lower = np.zeros((n, n))

    for i in range(n):
        for j in range(i + 1):
            s = float(np.dot(lower[i, :j], lower[j, :j]))
            if i == j:
                radicand = m[i, i] - s
                if radicand < -PIVOT_TOLERANCE:
                    raise NotPositiveSemiDefiniteError(
                        f"Matrix is not positive semi-definite (pivot {i} = {radicand:.6g})"
                    )
                lower[i, i] = math.sqrt(max(radicand, 0.0))
            else:
                residual = m[i, j] - s
                if lower[j, j] <= PIVOT_TOLERANCE:
                    if abs(residual) > math.sqrt(PIVOT_TOLERANCE):
                        raise NotPositiveSemiDefiniteError(
                            f"Matrix is not positive semi-definite (zero pivot {j}, "
                            f"residual {residual:.6g} in row {i})"
                        )
                    lower[i, j] = 0.0
                else:
                    lower[i, j] = residual / lower[j, j]

    return lower


def correlated_normals(lower: np.ndarray, variates: VariateSource, size: int | None = None) -> np.ndarray:
    """Correlated N(0, 1) draws: one vector, or ``size`` rows of them."""
    n = lower.shape[0]
    if size is None:
        return lower @ variates.draw(n)
    return variates.draw((size, n)) @ lower.T


def validate_correlation_matrix(matrix: Sequence[Sequence[float]], size: int) -> np.ndarray:
    m = _as_matrix(matrix, f"Correlation matrix rows must all have length {size}")
    if m.shape != (size, size):
        raise ValidationError(
            f"Correlation matrix must be {size}x{size} (one row per scenario), got {m.shape}"
        )
    if not all_finite(m):
        raise ValidationError("Correlation matrix contains non-finite entries")
    if not np.allclose(m, m.T, atol=SYMMETRY_TOLERANCE, rtol=0):
        raise ValidationError("Correlation matrix must be symmetric")
    if not np.allclose(np.diag(m), 1.0, atol=SYMMETRY_TOLERANCE, rtol=0):
        raise ValidationError("Correlation matrix diagonal must be 1")
    if np.any(np.abs(m) > 1.0):
        raise ValidationError("Correlation entries must lie in [-1, 1]")
    return m


def analyze_scenarios(
    base_case: BaseCase,
    scenarios: Sequence[Scenario],
    correlation_matrix: Sequence[Sequence[float]],
    confidence_level: float,
    iterations: int = DEFAULT_ITERATIONS,
    variates: VariateSource | None = None,
    should_cancel: Callable[[], bool] | None = None,
    sample_size: int = DEFAULT_SAMPLE_SIZE,
) -> ScenarioAnalysisResult:
    """Monte Carlo over correlated scenario shocks.

    Per trial, each metric is
    ``(base + Σ_{z_i > 0} rate_i·p_i·z_i) / Σ p_i`` with ``p_i`` the scenario
    probability as a fraction and ``rate_i`` the scenario's revenue growth,
    margin improvement or valuation impact.

    Returns:
        Per-metric statistics, echoed matrix and confidence level, and the
        first ``sample_size`` trial outcomes.
    """
    if not scenarios:
        raise ValidationError("At least one scenario is required")
    if not 0.0 < confidence_level < 1.0:
        raise ValidationError(f"confidence_level must be in (0, 1), got {confidence_level!r}")
    require_positive_int("iterations", iterations)

    matrix = validate_correlation_matrix(correlation_matrix, len(scenarios))
    lower = cholesky(matrix)

    probabilities = np.array([s.probability / 100.0 for s in scenarios])
    total_weight = float(np.sum(probabilities))
    if total_weight <= 0.0:
        raise ValidationError("Scenario probabilities sum to zero; nothing to weight")

    # (scenario, metric) impact per unit of positive shock
    impacts = np.array(
        [
            [s.revenue_growth_rate, s.margin_improvement_rate, s.valuation_impact]
            for s in scenarios
        ]
    ) * probabilities[:, None]
    base = np.array([base_case.revenue, base_case.margin, base_case.valuation])

    if variates is None:
        variates = RandomVariateGenerator()

    logger.debug(
        "Scenario analysis: %d scenarios, %d iterations, confidence %.3f",
        len(scenarios), iterations, confidence_level,
    )

    outcomes = np.empty((iterations, len(METRICS)))
    for start in range(0, iterations, CANCEL_CHECK_INTERVAL):
        if should_cancel is not None and should_cancel():
            logger.info("Scenario analysis: cancelled after %d of %d iterations", start, iterations)
            raise CalculationCancelled()
        stop = min(start + CANCEL_CHECK_INTERVAL, iterations)
        shocks = correlated_normals(lower, variates, size=stop - start)
        outcomes[start:stop] = (base + np.clip(shocks, 0.0, None) @ impacts) / total_weight

    if not all_finite(outcomes):
        raise ComputationError("Scenario analysis produced non-finite outcomes")

    statistics: dict[str, MetricStatistics] = {}
    for k, metric in enumerate(METRICS):
        values = np.sort(outcomes[:, k])
        mean, _, std = moments(values)
        statistics[metric] = MetricStatistics(
            mean=mean,
            standard_deviation=std,
            confidence_interval=symmetric_interval(values, confidence_level),
            percentiles=percentiles(values, ANALYSIS_PERCENTILES),
        )

    base_dict = base_case.model_dump()
    sample_results = []
    for row in outcomes[:sample_size]:
        trial = dict(base_dict)
        trial.update({metric: float(row[k]) for k, metric in enumerate(METRICS)})
        sample_results.append(trial)

    return ScenarioAnalysisResult(
        statistics=statistics,
        correlation_matrix=matrix.tolist(),
        confidence_level=confidence_level,
        sample_results=sample_results,
    )
