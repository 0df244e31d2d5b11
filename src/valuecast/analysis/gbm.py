"""Monte Carlo valuation outcomes via Geometric Brownian Motion.

Each trial evolves a normalised value of 1.0 for every scenario over monthly
steps, then combines the terminal values with the scenario probabilities:

    value_T = exp(Σ_t [(g + m − ½σ²)·dt + σ·√dt·Z_t]),   dt = 1/12
    outcome = Σ p_i·value_T,i / Σ p_i
"""

import logging
from typing import Callable, Sequence

import numpy as np

from valuecast.analysis.models import Scenario, SimulationResult
from valuecast.analysis.stats import all_finite, moments, percentiles, require_positive_int
from valuecast.analysis.variates import RandomVariateGenerator, VariateSource
from valuecast.errors import CalculationCancelled, ComputationError, ValidationError

logger = logging.getLogger(__name__)

MONTHS_PER_YEAR = 12
DEFAULT_RAW_SAMPLE_SIZE = 1000
DEFAULT_PROGRESS_STEPS = 100

SIMULATION_PERCENTILES = {
    "p5": 0.05,
    "p10": 0.10,
    "p25": 0.25,
    "p50": 0.50,
    "p75": 0.75,
    "p90": 0.90,
    "p95": 0.95,
}


def simulate_scenarios(
    scenarios: Sequence[Scenario],
    iterations: int,
    time_horizon_months: int,
    volatility: float,
    risk_free_rate: float = 0.0,
    variates: VariateSource | None = None,
    on_progress: Callable[[float], None] | None = None,
    should_cancel: Callable[[], bool] | None = None,
    raw_sample_size: int = DEFAULT_RAW_SAMPLE_SIZE,
    progress_steps: int = DEFAULT_PROGRESS_STEPS,
) -> SimulationResult:
    """Simulate probability-weighted growth scenarios.

    Trials run in blocks of ``max(1, iterations // progress_steps)``. Before
    each block ``on_progress`` receives the completed share (0-100) and
    ``should_cancel`` is polled; a truthy answer aborts with
    CalculationCancelled.

    Args:
        scenarios: Growth scenarios; probabilities need not sum to 100.
        iterations: Number of Monte Carlo trials.
        time_horizon_months: Number of monthly GBM steps.
        volatility: Annualised volatility (fraction).
        risk_free_rate: Accepted for the request contract; the growth
            drift comes from the scenarios themselves.
        variates: Normal variate source (fresh entropy when omitted).
        on_progress: Progress callback.
        should_cancel: Cooperative cancellation check.
        raw_sample_size: How many sorted outcomes to return.
        progress_steps: Number of progress updates over the run.

    Returns:
        SimulationResult with moments, percentiles and a bounded sample.
    """
    _validate(scenarios, iterations, time_horizon_months, volatility)

    probabilities = np.array([s.probability / 100.0 for s in scenarios])
    total_probability = float(np.sum(probabilities))
    if total_probability <= 0.0:
        raise ValidationError("Scenario probabilities sum to zero; nothing to weight")

    growth = np.array(
        [(s.revenue_growth_rate + s.margin_improvement_rate) / 100.0 for s in scenarios]
    )
    dt = 1.0 / MONTHS_PER_YEAR
    step_drift = (growth - 0.5 * volatility**2) * dt
    step_vol = volatility * np.sqrt(dt)

    if variates is None:
        variates = RandomVariateGenerator()

    logger.debug(
        "GBM: %d scenarios, %d iterations, %d months, sigma=%.4f, r=%.4f",
        len(scenarios), iterations, time_horizon_months, volatility, risk_free_rate,
    )

    block = max(1, iterations // progress_steps)
    outcomes = np.empty(iterations)

    for start in range(0, iterations, block):
        if should_cancel is not None and should_cancel():
            logger.info("GBM: cancelled after %d of %d iterations", start, iterations)
            raise CalculationCancelled()
        if on_progress is not None:
            on_progress(start / iterations * 100.0)

        stop = min(start + block, iterations)
        z = variates.draw((stop - start, len(scenarios), time_horizon_months))
        log_terminal = step_drift * time_horizon_months + step_vol * np.sum(z, axis=2)
        with np.errstate(over="ignore"):
            terminal = np.exp(log_terminal)
        outcomes[start:stop] = terminal @ probabilities / total_probability

    if not all_finite(outcomes):
        raise ComputationError(
            "GBM produced non-finite outcomes; growth rates or volatility too extreme"
        )

    outcomes.sort()
    mean, variance, std = moments(outcomes)
    pct = percentiles(outcomes, SIMULATION_PERCENTILES)

    return SimulationResult(
        mean=mean,
        standard_deviation=std,
        variance=variance,
        percentiles=pct,
        confidence_intervals={
            "ci90": [pct["p5"], pct["p95"]],
            "ci80": [pct["p10"], pct["p90"]],
            "ci50": [pct["p25"], pct["p75"]],
        },
        raw_results=outcomes[:raw_sample_size].tolist(),
        iterations=iterations,
    )


def _validate(
    scenarios: Sequence[Scenario],
    iterations: int,
    time_horizon_months: int,
    volatility: float,
) -> None:
    if not scenarios:
        raise ValidationError("At least one scenario is required")
    require_positive_int("iterations", iterations)
    require_positive_int("time_horizon_months", time_horizon_months)
    if not np.isfinite(volatility) or volatility < 0:
        raise ValidationError(f"volatility must be non-negative, got {volatility!r}")
