"""Error function and standard normal helpers used by option pricing.

erf uses the Abramowitz & Stegun 7.1.26 rational approximation
(max absolute error ~1.5e-7). All functions accept floats or NumPy arrays.
"""

import numpy as np

A1 = 0.254829592
A2 = -0.284496736
A3 = 1.421413741
A4 = -1.453152027
A5 = 1.061405429
P = 0.3275911

SQRT_2 = np.sqrt(2.0)
SQRT_2PI = np.sqrt(2.0 * np.pi)


def erf(x):
    """Odd rational approximation of the error function."""
    arr = np.asarray(x, dtype=float)
    sign = np.where(arr >= 0, 1.0, -1.0)
    ax = np.abs(arr)

    t = 1.0 / (1.0 + P * ax)
    y = 1.0 - (((((A5 * t + A4) * t) + A3) * t + A2) * t + A1) * t * np.exp(-ax * ax)

    result = sign * y
    if result.ndim == 0:
        return float(result)
    return result


def norm_cdf(x):
    """Standard normal CDF, Φ(x) = ½(1 + erf(x/√2))."""
    arr = np.asarray(x, dtype=float)
    result = 0.5 * (1.0 + np.asarray(erf(arr / SQRT_2)))
    if result.ndim == 0:
        return float(result)
    return result


def norm_pdf(x):
    """Standard normal density φ(x)."""
    arr = np.asarray(x, dtype=float)
    result = np.exp(-0.5 * arr * arr) / SQRT_2PI
    if result.ndim == 0:
        return float(result)
    return result
