"""Routes typed calculation requests to the simulation engines.

``TaskDispatcher.handle`` is the single message boundary: every engine error
is caught here and returned as ``{id, error, error_type}``; nothing escapes.
"""

import logging
from collections.abc import Mapping
from typing import Any, Callable

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from valuecast.analysis.correlation import analyze_scenarios
from valuecast.analysis.gbm import simulate_scenarios
from valuecast.analysis.options import (
    analyze_options_portfolio,
    implied_volatility,
    price_binomial,
    price_monte_carlo,
    price_option,
)
from valuecast.analysis.risk import value_at_risk
from valuecast.analysis.variates import VariateSource, default_variates
from valuecast.config import Settings
from valuecast.errors import (
    ComputationError,
    EngineError,
    ProtocolError,
    UnknownTaskTypeError,
    ValidationError,
)
from valuecast.worker.messages import (
    PROGRESS_ID,
    BinomialParams,
    ImpliedVolatilityParams,
    MonteCarloParams,
    OptionMonteCarloParams,
    OptionPricingParams,
    OptionsPortfolioParams,
    ProgressMessage,
    ScenarioAnalysisParams,
    TaskError,
    TaskRequest,
    TaskResult,
    TaskType,
    VaRParams,
)

logger = logging.getLogger(__name__)

Emitter = Callable[[dict[str, Any]], None]


class TaskContext:
    """Per-request plumbing handed to the handlers."""

    def __init__(
        self,
        task_id: str,
        emit: Emitter | None,
        should_cancel: Callable[[], bool] | None,
        variates: VariateSource,
    ):
        self.task_id = task_id
        self.emit = emit
        self.should_cancel = should_cancel
        self.variates = variates

    def progress(self, value: float) -> None:
        if self.emit is None:
            return
        message = ProgressMessage(progress=min(max(value, 0.0), 100.0), task_id=self.task_id)
        try:
            self.emit(message.model_dump())
        except Exception as e:
            # Progress is best-effort; a broken consumer must not fail the task
            logger.warning("Dropping progress update for %s: %s", self.task_id, e)


class TaskDispatcher:
    """Tagged-union router over calculation types."""

    def __init__(
        self,
        settings: Settings | None = None,
        variates_factory: Callable[[], VariateSource] | None = None,
    ):
        self.settings = settings or Settings()
        self._variates_factory = variates_factory or (
            lambda: default_variates(self.settings.random_seed)
        )
        self._handlers: dict[str, Callable[[dict[str, Any], TaskContext], dict]] = {
            TaskType.MONTE_CARLO.value: self._monte_carlo,
            TaskType.OPTION_PRICING.value: self._option_pricing,
            TaskType.SCENARIO_ANALYSIS.value: self._scenario_analysis,
            TaskType.VAR_CALCULATION.value: self._var_calculation,
            TaskType.IMPLIED_VOLATILITY.value: self._implied_volatility,
            TaskType.BINOMIAL_PRICING.value: self._binomial_pricing,
            TaskType.OPTION_MONTE_CARLO.value: self._option_monte_carlo,
            TaskType.OPTIONS_PORTFOLIO.value: self._options_portfolio,
        }

    @property
    def task_types(self) -> tuple[str, ...]:
        return tuple(self._handlers)

    def handle(
        self,
        request: Any,
        emit: Emitter | None = None,
        should_cancel: Callable[[], bool] | None = None,
    ) -> dict[str, Any]:
        """Run one request to completion and return its response message."""
        task_id = _peek_id(request)
        try:
            message = _parse_request(request)
            handler = self._handlers.get(message.type)
            if handler is None:
                raise UnknownTaskTypeError(message.type)

            logger.info("Task %s: %s started", message.id, message.type)
            context = TaskContext(message.id, emit, should_cancel, self._variates_factory())
            result = handler(message.params, context)
            logger.info("Task %s: %s complete", message.id, message.type)
            return TaskResult(id=message.id, result=result).model_dump()

        except EngineError as e:
            logger.warning("Task %s failed: %s: %s", task_id, type(e).__name__, e)
            return TaskError(id=task_id, error=str(e), error_type=type(e).__name__).model_dump()
        except Exception as e:
            logger.error("Task %s crashed: %s", task_id, e, exc_info=True)
            return TaskError(
                id=task_id, error=str(e) or type(e).__name__, error_type=ComputationError.__name__
            ).model_dump()

    # --- Handlers ---

    def _monte_carlo(self, params: dict[str, Any], ctx: TaskContext) -> dict:
        p = _parse_params(MonteCarloParams, params)
        iterations = p.iterations or self.settings.simulation_default_iterations
        if iterations > self.settings.simulation_max_iterations:
            raise ValidationError(
                f"iterations {iterations} exceeds limit {self.settings.simulation_max_iterations}"
            )
        if p.time_horizon_months > self.settings.simulation_max_horizon_months:
            raise ValidationError(
                f"time_horizon_months {p.time_horizon_months} exceeds limit "
                f"{self.settings.simulation_max_horizon_months}"
            )
        return simulate_scenarios(
            p.scenarios,
            iterations=iterations,
            time_horizon_months=p.time_horizon_months,
            volatility=p.volatility,
            risk_free_rate=p.risk_free_rate,
            variates=ctx.variates,
            on_progress=ctx.progress,
            should_cancel=ctx.should_cancel,
            raw_sample_size=self.settings.simulation_raw_sample_size,
            progress_steps=self.settings.simulation_progress_steps,
        )

    def _option_pricing(self, params: dict[str, Any], ctx: TaskContext) -> dict:
        p = _parse_params(OptionPricingParams, params)
        return price_option(
            p.spot_price,
            p.strike_price,
            p.time_to_expiry,
            p.volatility,
            p.risk_free_rate,
            p.dividend_yield,
        )

    def _scenario_analysis(self, params: dict[str, Any], ctx: TaskContext) -> dict:
        p = _parse_params(ScenarioAnalysisParams, params)
        return analyze_scenarios(
            p.base_case,
            p.scenarios,
            p.correlation_matrix,
            confidence_level=p.confidence_level or self.settings.analysis_confidence_level,
            iterations=p.iterations or self.settings.analysis_iterations,
            variates=ctx.variates,
            should_cancel=ctx.should_cancel,
            sample_size=self.settings.analysis_sample_size,
        )

    def _var_calculation(self, params: dict[str, Any], ctx: TaskContext) -> dict:
        p = _parse_params(VaRParams, params)
        return value_at_risk(
            p.scenarios,
            confidence_level=p.confidence_level or self.settings.var_confidence_level,
        )

    def _implied_volatility(self, params: dict[str, Any], ctx: TaskContext) -> dict:
        p = _parse_params(ImpliedVolatilityParams, params)
        return implied_volatility(
            p.market_price,
            p.spot_price,
            p.strike_price,
            p.time_to_expiry,
            p.risk_free_rate,
            option_type=p.option_type,
            dividend_yield=p.dividend_yield,
            tolerance=self.settings.implied_vol_tolerance,
            max_iterations=self.settings.implied_vol_max_iterations,
        )

    def _binomial_pricing(self, params: dict[str, Any], ctx: TaskContext) -> dict:
        p = _parse_params(BinomialParams, params)
        return price_binomial(
            p.spot_price,
            p.strike_price,
            p.time_to_expiry,
            p.volatility,
            p.risk_free_rate,
            steps=p.steps or self.settings.binomial_default_steps,
            option_type=p.option_type,
            exercise=p.exercise,
        )

    def _option_monte_carlo(self, params: dict[str, Any], ctx: TaskContext) -> dict:
        p = _parse_params(OptionMonteCarloParams, params)
        simulations = p.simulations or self.settings.option_mc_default_simulations
        if simulations > self.settings.option_mc_max_simulations:
            raise ValidationError(
                f"simulations {simulations} exceeds limit {self.settings.option_mc_max_simulations}"
            )
        return price_monte_carlo(
            p.spot_price,
            p.strike_price,
            p.time_to_expiry,
            p.volatility,
            p.risk_free_rate,
            simulations=simulations,
            option_type=p.option_type,
            variates=ctx.variates,
            should_cancel=ctx.should_cancel,
        )

    def _options_portfolio(self, params: dict[str, Any], ctx: TaskContext) -> dict:
        p = _parse_params(OptionsPortfolioParams, params)
        return analyze_options_portfolio(p.positions)


def _peek_id(request: Any) -> str | None:
    if isinstance(request, Mapping):
        task_id = request.get("id")
        return task_id if isinstance(task_id, str) else None
    return None


def _parse_request(request: Any) -> TaskRequest:
    if not isinstance(request, Mapping):
        raise ProtocolError(f"Request must be an object, got {type(request).__name__}")
    try:
        message = TaskRequest.model_validate(request)
    except PydanticValidationError as e:
        raise ProtocolError(f"Malformed request: {_describe(e)}") from e
    if message.id == PROGRESS_ID:
        raise ProtocolError(f"Request id '{PROGRESS_ID}' is reserved for progress messages")
    return message


def _parse_params(model: type[BaseModel], params: dict[str, Any]):
    try:
        return model.model_validate(params)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid parameters: {_describe(e)}") from e


def _describe(error: PydanticValidationError) -> str:
    parts = []
    for err in error.errors():
        loc = ".".join(str(part) for part in err["loc"]) or "request"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)
