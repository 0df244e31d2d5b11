"""Value objects shared by the simulation engines.

Inputs are pydantic models so the worker can validate raw messages directly;
results are plain TypedDicts that serialise straight to JSON.

Scenario rates and probabilities are percentage points as entered by users
(``5`` means 5 %). Volatility, rates and confidence levels are fractions.
"""

from typing import Literal, TypedDict

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class Scenario(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", allow_inf_nan=False)

    name: str = ""
    probability: float = Field(ge=0, description="Scenario weight in percent")
    revenue_growth_rate: float = Field(
        validation_alias=AliasChoices("revenue_growth_rate", "revenueGrowthRate", "revenueGrowth"),
        description="Annual revenue growth in percent",
    )
    margin_improvement_rate: float = Field(
        default=0.0,
        validation_alias=AliasChoices(
            "margin_improvement_rate", "marginImprovementRate", "marginImprovement"
        ),
        description="Annual margin improvement in percent",
    )
    valuation_impact: float = Field(
        default=0.0,
        validation_alias=AliasChoices("valuation_impact", "valuationImpact"),
        description="Valuation change in percent",
    )


class BaseCase(BaseModel):
    """Starting point for scenario analysis. Unknown keys are echoed back."""

    model_config = ConfigDict(extra="allow", allow_inf_nan=False)

    revenue: float = 0.0
    margin: float = 0.0
    valuation: float = 0.0


class OptionPosition(BaseModel):
    """A long holding of ``quantity`` European options on one underlying."""

    model_config = ConfigDict(frozen=True, extra="ignore", allow_inf_nan=False)

    name: str = ""
    option_type: Literal["call", "put"] = Field(
        validation_alias=AliasChoices("option_type", "optionType", "type")
    )
    spot_price: float = Field(gt=0, validation_alias=AliasChoices("spot_price", "spotPrice"))
    strike_price: float = Field(gt=0, validation_alias=AliasChoices("strike_price", "strikePrice"))
    time_to_expiry: float = Field(
        gt=0,
        validation_alias=AliasChoices(
            "time_to_expiry", "time_to_expiry_years", "timeToExpiryYears", "timeToExpiry"
        ),
    )
    volatility: float = Field(gt=0)
    risk_free_rate: float = Field(validation_alias=AliasChoices("risk_free_rate", "riskFreeRate"))
    dividend_yield: float = Field(
        0.0, validation_alias=AliasChoices("dividend_yield", "dividendYield")
    )
    quantity: float = Field(1.0, gt=0)


# --- Results ---


class SimulationPercentiles(TypedDict):
    p5: float
    p10: float
    p25: float
    p50: float
    p75: float
    p90: float
    p95: float


class ConfidenceIntervals(TypedDict):
    ci90: list[float]
    ci80: list[float]
    ci50: list[float]


class SimulationResult(TypedDict):
    mean: float
    standard_deviation: float
    variance: float
    percentiles: SimulationPercentiles
    confidence_intervals: ConfidenceIntervals
    raw_results: list[float]
    iterations: int


class Greeks(TypedDict):
    price: float
    delta: float
    gamma: float
    theta: float
    vega: float
    rho: float
    intrinsic_value: float
    time_value: float


class OptionPriceResult(TypedDict):
    call: Greeks
    put: Greeks
    implied_volatility: float
    time_decay: float
    moneyness: float


class MonteCarloOptionResult(TypedDict):
    price: float
    standard_error: float
    confidence_interval: list[float]
    simulations: int
    option_type: str


class PositionSummary(TypedDict):
    name: str
    option_type: str
    quantity: float
    price: float
    value: float
    breakeven: float


class PortfolioRiskMetrics(TypedDict):
    max_loss: float
    max_gain: float | None
    breakevens: list[float]


class OptionsPortfolioResult(TypedDict):
    total_value: float
    total_delta: float
    total_gamma: float
    total_theta: float
    total_vega: float
    total_rho: float
    positions: list[PositionSummary]
    risk_metrics: PortfolioRiskMetrics


class MetricStatistics(TypedDict):
    mean: float
    standard_deviation: float
    confidence_interval: list[float]
    percentiles: dict[str, float]


class ScenarioAnalysisResult(TypedDict):
    statistics: dict[str, MetricStatistics]
    correlation_matrix: list[list[float]]
    confidence_level: float
    sample_results: list[dict]


class VaRResult(TypedDict):
    value_at_risk: float
    expected_shortfall: float
    confidence_level: float
    worst_case: float
    best_case: float
    tail_size: int
    degenerate_tail: bool


__all__ = [
    "Scenario",
    "BaseCase",
    "SimulationResult",
    "OptionPriceResult",
    "Greeks",
    "OptionPosition",
    "MonteCarloOptionResult",
    "OptionsPortfolioResult",
    "PositionSummary",
    "PortfolioRiskMetrics",
    "ScenarioAnalysisResult",
    "MetricStatistics",
    "VaRResult",
]
