"""Message schemas for the calculation worker protocol.

Requests:  {id, type, params}
Responses: {id, result} | {id, error, error_type} | {id: "progress", progress, task_id}

Params accept camelCase (browser clients) or snake_case keys.
"""

from enum import Enum
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from valuecast.analysis.models import BaseCase, OptionPosition, Scenario

PROGRESS_ID = "progress"


class TaskType(str, Enum):
    MONTE_CARLO = "monte-carlo"
    OPTION_PRICING = "option-pricing"
    SCENARIO_ANALYSIS = "scenario-analysis"
    VAR_CALCULATION = "var-calculation"
    IMPLIED_VOLATILITY = "implied-volatility"
    BINOMIAL_PRICING = "binomial-pricing"
    OPTION_MONTE_CARLO = "option-monte-carlo"
    OPTIONS_PORTFOLIO = "options-portfolio"


def _alias(*names: str) -> AliasChoices:
    return AliasChoices(*names)


class TaskRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    type: str = Field(min_length=1)
    params: dict[str, Any] = Field(default_factory=dict)


# --- Params ---


class _Params(BaseModel):
    model_config = ConfigDict(extra="ignore", allow_inf_nan=False)


class MonteCarloParams(_Params):
    scenarios: list[Scenario] = Field(min_length=1)
    iterations: int | None = Field(None, gt=0)
    time_horizon_months: int = Field(
        gt=0, validation_alias=_alias("time_horizon_months", "timeHorizonMonths", "timeHorizon")
    )
    volatility: float = Field(ge=0)
    risk_free_rate: float = Field(0.0, validation_alias=_alias("risk_free_rate", "riskFreeRate"))


class OptionPricingParams(_Params):
    spot_price: float = Field(gt=0, validation_alias=_alias("spot_price", "spotPrice"))
    strike_price: float = Field(gt=0, validation_alias=_alias("strike_price", "strikePrice"))
    time_to_expiry: float = Field(
        gt=0,
        validation_alias=_alias(
            "time_to_expiry", "time_to_expiry_years", "timeToExpiryYears", "timeToExpiry"
        ),
    )
    volatility: float = Field(gt=0)
    risk_free_rate: float = Field(validation_alias=_alias("risk_free_rate", "riskFreeRate"))
    dividend_yield: float = Field(0.0, validation_alias=_alias("dividend_yield", "dividendYield"))


class ScenarioAnalysisParams(_Params):
    base_case: BaseCase = Field(
        default_factory=BaseCase, validation_alias=_alias("base_case", "baseCase")
    )
    scenarios: list[Scenario] = Field(min_length=1)
    correlation_matrix: list[list[float]] = Field(
        validation_alias=_alias("correlation_matrix", "correlationMatrix", "correlations")
    )
    confidence_level: float | None = Field(
        None, gt=0, lt=1, validation_alias=_alias("confidence_level", "confidenceLevel")
    )
    iterations: int | None = Field(None, gt=0)


class VaRParams(_Params):
    scenarios: list[Scenario] = Field(min_length=1)
    confidence_level: float | None = Field(
        None, gt=0, lt=1, validation_alias=_alias("confidence_level", "confidenceLevel")
    )


class ImpliedVolatilityParams(_Params):
    market_price: float = Field(gt=0, validation_alias=_alias("market_price", "marketPrice"))
    spot_price: float = Field(gt=0, validation_alias=_alias("spot_price", "spotPrice"))
    strike_price: float = Field(gt=0, validation_alias=_alias("strike_price", "strikePrice"))
    time_to_expiry: float = Field(
        gt=0,
        validation_alias=_alias(
            "time_to_expiry", "time_to_expiry_years", "timeToExpiryYears", "timeToExpiry"
        ),
    )
    risk_free_rate: float = Field(validation_alias=_alias("risk_free_rate", "riskFreeRate"))
    option_type: Literal["call", "put"] = Field(
        "call", validation_alias=_alias("option_type", "optionType")
    )
    dividend_yield: float = Field(0.0, validation_alias=_alias("dividend_yield", "dividendYield"))


class BinomialParams(_Params):
    spot_price: float = Field(gt=0, validation_alias=_alias("spot_price", "spotPrice"))
    strike_price: float = Field(gt=0, validation_alias=_alias("strike_price", "strikePrice"))
    time_to_expiry: float = Field(
        gt=0,
        validation_alias=_alias(
            "time_to_expiry", "time_to_expiry_years", "timeToExpiryYears", "timeToExpiry"
        ),
    )
    volatility: float = Field(gt=0)
    risk_free_rate: float = Field(validation_alias=_alias("risk_free_rate", "riskFreeRate"))
    steps: int | None = Field(None, gt=0)
    option_type: Literal["call", "put"] = Field(
        "call", validation_alias=_alias("option_type", "optionType")
    )
    exercise: Literal["american", "european"] = Field(
        "american", validation_alias=_alias("exercise", "exerciseType")
    )


class OptionMonteCarloParams(_Params):
    spot_price: float = Field(gt=0, validation_alias=_alias("spot_price", "spotPrice"))
    strike_price: float = Field(gt=0, validation_alias=_alias("strike_price", "strikePrice"))
    time_to_expiry: float = Field(
        gt=0,
        validation_alias=_alias(
            "time_to_expiry", "time_to_expiry_years", "timeToExpiryYears", "timeToExpiry"
        ),
    )
    volatility: float = Field(gt=0)
    risk_free_rate: float = Field(validation_alias=_alias("risk_free_rate", "riskFreeRate"))
    simulations: int | None = Field(
        None, gt=0, validation_alias=_alias("simulations", "numSimulations")
    )
    option_type: Literal["call", "put"] = Field(
        "call", validation_alias=_alias("option_type", "optionType")
    )


class OptionsPortfolioParams(_Params):
    positions: list[OptionPosition] = Field(
        min_length=1, validation_alias=_alias("positions", "options")
    )


# --- Responses ---


class TaskResult(BaseModel):
    id: str | None
    result: dict[str, Any]


class TaskError(BaseModel):
    id: str | None
    error: str
    error_type: str


class ProgressMessage(BaseModel):
    id: Literal["progress"] = PROGRESS_ID
    progress: float = Field(ge=0, le=100)
    task_id: str | None = None
