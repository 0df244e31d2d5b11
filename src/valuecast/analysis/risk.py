"""Tail-risk statistics over a scenario set.

Pure computation: each scenario's revenue growth rate is treated as one
return observation.
"""

import logging
import math
from typing import Sequence

import numpy as np

from valuecast.analysis.models import Scenario, VaRResult
from valuecast.errors import ValidationError

logger = logging.getLogger(__name__)


def value_at_risk(
    scenarios: Sequence[Scenario],
    confidence_level: float = 0.95,
) -> VaRResult:
    """Historical-style VaR and Expected Shortfall.

    Returns are sorted ascending; with ``k = min(floor((1 - c) * n), n - 1)``:

        VaR = r[k]
        ES  = mean(r[0:k])

    Small samples: when ``n < 1 / (1 - c)`` the tail below index 0 is empty.
    Instead of averaging nothing, ES is reported equal to VaR (the worst
    observation), ``tail_size`` is 0 and ``degenerate_tail`` is True, so
    callers can tell the estimate rests on a single point.

    Args:
        scenarios: Scenario set; revenue growth is read in percent.
        confidence_level: Confidence level c in (0, 1).

    Returns:
        VaRResult with VaR, ES, the extremes and tail diagnostics.
    """
    if not scenarios:
        raise ValidationError("At least one scenario is required for VaR")
    if confidence_level is None or not 0.0 < confidence_level < 1.0:
        raise ValidationError(f"confidence_level must be in (0, 1), got {confidence_level!r}")

    returns = np.sort(np.array([s.revenue_growth_rate / 100.0 for s in scenarios]))
    n = len(returns)
    # epsilon keeps e.g. (1 - 0.9) * 10 from flooring to 0; a c near 0 can push k to n
    k = min(int(math.floor((1.0 - confidence_level) * n + 1e-9)), n - 1)

    var = float(returns[k])
    degenerate = k == 0
    if degenerate:
        logger.warning(
            "VaR tail is empty: %d scenarios < %.1f needed at confidence %.3f; "
            "reporting ES = VaR = worst case",
            n, 1.0 / (1.0 - confidence_level), confidence_level,
        )
        expected_shortfall = var
    else:
        expected_shortfall = float(np.mean(returns[:k]))

    return VaRResult(
        value_at_risk=var,
        expected_shortfall=expected_shortfall,
        confidence_level=confidence_level,
        worst_case=float(returns[0]),
        best_case=float(returns[-1]),
        tail_size=k,
        degenerate_tail=degenerate,
    )
