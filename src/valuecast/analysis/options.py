"""Black-Scholes option pricing with Greeks.

European call/put on a dividend-paying asset (continuous yield q):

    d1 = (ln(S/K) + (r − q + ½σ²)T) / (σ√T),   d2 = d1 − σ√T
    C  = S·e^{−qT}·Φ(d1) − K·e^{−rT}·Φ(d2)
    P  = C − S·e^{−qT} + K·e^{−rT}                (put-call parity)

Theta is reported per calendar day, vega and rho per one-point move.
Also provides a Newton-Raphson implied volatility solver and a
Cox-Ross-Rubinstein binomial tree for American exercise, a Monte Carlo
cross-check price and an aggregate view over a book of long positions.
"""

import logging
import math
from typing import Callable, Sequence

import numpy as np

from valuecast.analysis.models import (
    Greeks,
    MonteCarloOptionResult,
    OptionPosition,
    OptionPriceResult,
    OptionsPortfolioResult,
    PositionSummary,
)
from valuecast.analysis.special import norm_cdf, norm_pdf
from valuecast.analysis.stats import all_finite, moments, require_positive_int
from valuecast.analysis.variates import RandomVariateGenerator, VariateSource
from valuecast.errors import CalculationCancelled, ComputationError, ValidationError

logger = logging.getLogger(__name__)

DAYS_PER_YEAR = 365
OPTION_TYPES = ("call", "put")
EXERCISE_STYLES = ("american", "european")
MAX_IMPLIED_VOLATILITY = 5.0
MC_CONFIDENCE_Z = 1.96
MC_BLOCK_SIZE = 10000


def price_option(
    spot_price: float,
    strike_price: float,
    time_to_expiry: float,
    volatility: float,
    risk_free_rate: float,
    dividend_yield: float = 0.0,
) -> OptionPriceResult:
    """Price a European call and put and their Greeks.

    Args:
        spot_price: Current underlying value S (> 0).
        strike_price: Strike K (> 0).
        time_to_expiry: Years to expiry T (> 0).
        volatility: Annualised volatility σ (> 0).
        risk_free_rate: Continuously compounded rate r.
        dividend_yield: Continuous dividend yield q.

    Returns:
        OptionPriceResult with call and put legs, echoed volatility and
        spot/strike moneyness.
    """
    _validate_contract(spot_price, strike_price, time_to_expiry, volatility)
    _require_finite(risk_free_rate=risk_free_rate, dividend_yield=dividend_yield)

    S, K, T, sigma = spot_price, strike_price, time_to_expiry, volatility
    r, q = risk_free_rate, dividend_yield

    sqrt_t = math.sqrt(T)
    d1 = (math.log(S / K) + (r - q + 0.5 * sigma**2) * T) / (sigma * sqrt_t)
    d2 = d1 - sigma * sqrt_t

    div_discount = math.exp(-q * T)
    rate_discount = math.exp(-r * T)
    nd1 = norm_cdf(d1)
    nd2 = norm_cdf(d2)
    pdf_d1 = norm_pdf(d1)

    call_price = S * div_discount * nd1 - K * rate_discount * nd2
    put_price = call_price - S * div_discount + K * rate_discount

    delta_call = div_discount * nd1
    gamma = div_discount * pdf_d1 / (S * sigma * sqrt_t)
    theta_call = (
        -S * pdf_d1 * sigma * div_discount / (2 * sqrt_t)
        - r * K * rate_discount * nd2
        + q * S * div_discount * nd1
    ) / DAYS_PER_YEAR
    vega = S * div_discount * pdf_d1 * sqrt_t / 100
    rho_call = K * T * rate_discount * nd2 / 100

    # Put Greeks from differentiating the parity relation
    delta_put = delta_call - div_discount
    theta_put = theta_call + (r * K * rate_discount - q * S * div_discount) / DAYS_PER_YEAR
    rho_put = -K * T * rate_discount * norm_cdf(-d2) / 100

    call_intrinsic = max(0.0, S - K)
    put_intrinsic = max(0.0, K - S)

    result = OptionPriceResult(
        call=Greeks(
            price=call_price,
            delta=delta_call,
            gamma=gamma,
            theta=theta_call,
            vega=vega,
            rho=rho_call,
            intrinsic_value=call_intrinsic,
            time_value=call_price - call_intrinsic,
        ),
        put=Greeks(
            price=put_price,
            delta=delta_put,
            gamma=gamma,
            theta=theta_put,
            vega=vega,
            rho=rho_put,
            intrinsic_value=put_intrinsic,
            time_value=put_price - put_intrinsic,
        ),
        implied_volatility=sigma,
        time_decay=theta_call,
        moneyness=S / K,
    )

    if not all(math.isfinite(v) for leg in ("call", "put") for v in result[leg].values()):
        raise ComputationError("Black-Scholes produced non-finite values")
    return result


def implied_volatility(
    market_price: float,
    spot_price: float,
    strike_price: float,
    time_to_expiry: float,
    risk_free_rate: float,
    option_type: str = "call",
    dividend_yield: float = 0.0,
    tolerance: float = 1e-4,
    max_iterations: int = 100,
    initial_guess: float = 0.5,
) -> dict:
    """Solve Black-Scholes for σ by Newton-Raphson on vega.

    Volatility is kept within [0.001, 5.0] after each step. Raises ComputationError
    when vega vanishes or the price is not matched within ``max_iterations``.
    """
    if option_type not in OPTION_TYPES:
        raise ValidationError(f"option_type must be one of {OPTION_TYPES}, got {option_type!r}")
    if not math.isfinite(market_price) or market_price <= 0:
        raise ValidationError(f"market_price must be positive, got {market_price!r}")
    _validate_contract(spot_price, strike_price, time_to_expiry, initial_guess)
    if tolerance <= 0 or max_iterations <= 0:
        raise ValidationError("tolerance and max_iterations must be positive")

    sigma = initial_guess
    for i in range(max_iterations):
        quote = price_option(
            spot_price, strike_price, time_to_expiry, sigma, risk_free_rate, dividend_yield
        )
        leg = quote[option_type]
        diff = leg["price"] - market_price

        if abs(diff) < tolerance:
            logger.debug("Implied vol converged to %.6f after %d iterations", sigma, i)
            return {
                "implied_volatility": sigma,
                "iterations": i,
                "price_error": diff,
                "option_type": option_type,
            }

        # vega is quoted per point, the Newton step needs per unit
        if leg["vega"] == 0:
            raise ComputationError(
                f"Implied volatility search stalled at sigma={sigma:.6f}: vega is zero"
            )
        sigma = min(max(sigma - diff / (leg["vega"] * 100), 0.001), MAX_IMPLIED_VOLATILITY)

    raise ComputationError(
        f"Implied volatility did not converge within {max_iterations} iterations "
        f"(last sigma={sigma:.6f})"
    )


def price_binomial(
    spot_price: float,
    strike_price: float,
    time_to_expiry: float,
    volatility: float,
    risk_free_rate: float,
    steps: int = 200,
    option_type: str = "call",
    exercise: str = "american",
) -> dict:
    """Cox-Ross-Rubinstein binomial tree price.

    With ``exercise='american'`` each node takes the larger of the
    continuation and immediate-exercise values.
    """
    _validate_contract(spot_price, strike_price, time_to_expiry, volatility)
    if option_type not in OPTION_TYPES:
        raise ValidationError(f"option_type must be one of {OPTION_TYPES}, got {option_type!r}")
    if exercise not in EXERCISE_STYLES:
        raise ValidationError(f"exercise must be one of {EXERCISE_STYLES}, got {exercise!r}")
    require_positive_int("steps", steps)

    dt = time_to_expiry / steps
    u = math.exp(volatility * math.sqrt(dt))
    d = 1.0 / u
    growth = math.exp(risk_free_rate * dt)
    p = (growth - d) / (u - d)
    if not 0.0 <= p <= 1.0:
        raise ComputationError(
            f"Risk-neutral probability {p:.4f} outside [0, 1]; increase steps"
        )
    discount = 1.0 / growth

    j = np.arange(steps + 1)
    values = _payoff(spot_price * u ** (steps - j) * d**j, strike_price, option_type)

    for step in range(steps - 1, -1, -1):
        values = discount * (p * values[:-1] + (1 - p) * values[1:])
        if exercise == "american":
            j = np.arange(step + 1)
            values = np.maximum(
                values, _payoff(spot_price * u ** (step - j) * d**j, strike_price, option_type)
            )

    return {
        "price": float(values[0]),
        "option_type": option_type,
        "exercise": exercise,
        "steps": int(steps),
    }


def price_monte_carlo(
    spot_price: float,
    strike_price: float,
    time_to_expiry: float,
    volatility: float,
    risk_free_rate: float,
    simulations: int = 100000,
    option_type: str = "call",
    variates: VariateSource | None = None,
    should_cancel: Callable[[], bool] | None = None,
) -> MonteCarloOptionResult:
    """Risk-neutral Monte Carlo price of a European option.

    Each trial draws the terminal price in one lognormal step,

        S_T = S·exp((r − ½σ²)T + σ√T·Z)

    and the price is the mean discounted payoff. The standard error uses the
    population variance of the discounted payoffs; the interval is
    ``price ± 1.96·SE``.
    """
    _validate_contract(spot_price, strike_price, time_to_expiry, volatility)
    _require_finite(risk_free_rate=risk_free_rate)
    if option_type not in OPTION_TYPES:
        raise ValidationError(f"option_type must be one of {OPTION_TYPES}, got {option_type!r}")
    require_positive_int("simulations", simulations)

    if variates is None:
        variates = RandomVariateGenerator()

    drift = (risk_free_rate - 0.5 * volatility**2) * time_to_expiry
    diffusion = volatility * math.sqrt(time_to_expiry)
    discount = math.exp(-risk_free_rate * time_to_expiry)

    payoffs = np.empty(simulations)
    for start in range(0, simulations, MC_BLOCK_SIZE):
        if should_cancel is not None and should_cancel():
            logger.info("Option Monte Carlo: cancelled after %d of %d trials", start, simulations)
            raise CalculationCancelled()
        stop = min(start + MC_BLOCK_SIZE, simulations)
        with np.errstate(over="ignore"):
            terminal = spot_price * np.exp(drift + diffusion * variates.draw(stop - start))
        payoffs[start:stop] = discount * _payoff(terminal, strike_price, option_type)

    if not all_finite(payoffs):
        raise ComputationError("Option Monte Carlo produced non-finite payoffs")

    price, variance, _ = moments(payoffs)
    standard_error = math.sqrt(variance / simulations)
    logger.debug(
        "Option Monte Carlo %s: %.6f +/- %.6f over %d trials",
        option_type, price, standard_error, simulations,
    )

    return MonteCarloOptionResult(
        price=price,
        standard_error=standard_error,
        confidence_interval=[
            price - MC_CONFIDENCE_Z * standard_error,
            price + MC_CONFIDENCE_Z * standard_error,
        ],
        simulations=int(simulations),
        option_type=option_type,
    )


def analyze_options_portfolio(positions: Sequence[OptionPosition]) -> OptionsPortfolioResult:
    """Aggregate value, Greeks and payoff bounds over long option positions.

    Every position is priced with Black-Scholes and weighted by its quantity.
    A long option can lose at most its premium. A put gains at most
    ``strike − premium``; a call's gain is unbounded, reported as
    ``max_gain = None``. Breakevens are ``strike ± premium`` per position.
    """
    if not positions:
        raise ValidationError("At least one option position is required")

    totals = dict.fromkeys(("value", "delta", "gamma", "theta", "vega", "rho"), 0.0)
    max_loss = 0.0
    max_gain = 0.0
    gain_unbounded = False
    summaries: list[PositionSummary] = []

    for position in positions:
        leg = price_option(
            position.spot_price,
            position.strike_price,
            position.time_to_expiry,
            position.volatility,
            position.risk_free_rate,
            position.dividend_yield,
        )[position.option_type]
        quantity = position.quantity
        premium = leg["price"]

        totals["value"] += quantity * premium
        for greek in ("delta", "gamma", "theta", "vega", "rho"):
            totals[greek] += quantity * leg[greek]

        max_loss += quantity * premium
        if position.option_type == "call":
            gain_unbounded = True
            breakeven = position.strike_price + premium
        else:
            max_gain += quantity * (position.strike_price - premium)
            breakeven = position.strike_price - premium

        summaries.append(
            PositionSummary(
                name=position.name,
                option_type=position.option_type,
                quantity=quantity,
                price=premium,
                value=quantity * premium,
                breakeven=breakeven,
            )
        )

    return OptionsPortfolioResult(
        total_value=totals["value"],
        total_delta=totals["delta"],
        total_gamma=totals["gamma"],
        total_theta=totals["theta"],
        total_vega=totals["vega"],
        total_rho=totals["rho"],
        positions=summaries,
        risk_metrics={
            "max_loss": max_loss,
            "max_gain": None if gain_unbounded else max_gain,
            "breakevens": [s["breakeven"] for s in summaries],
        },
    )


def _payoff(prices: np.ndarray, strike_price: float, option_type: str) -> np.ndarray:
    if option_type == "call":
        return np.maximum(prices - strike_price, 0.0)
    return np.maximum(strike_price - prices, 0.0)


def _validate_contract(
    spot_price: float, strike_price: float, time_to_expiry: float, volatility: float
) -> None:
    for name, value in (
        ("spot_price", spot_price),
        ("strike_price", strike_price),
        ("time_to_expiry", time_to_expiry),
        ("volatility", volatility),
    ):
        if value is None or not math.isfinite(value) or value <= 0:
            raise ValidationError(f"{name} must be positive, got {value!r}")


def _require_finite(**values: float) -> None:
    for name, value in values.items():
        if value is None or not math.isfinite(value):
            raise ValidationError(f"{name} must be finite, got {value!r}")
