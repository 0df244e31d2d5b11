"""Pytest configuration and shared fixtures."""

import pytest

from valuecast.analysis.models import BaseCase, Scenario
from valuecast.analysis.variates import RandomVariateGenerator
from valuecast.config import Settings


@pytest.fixture
def variates():
    """Seeded normal source for reproducible simulations."""
    return RandomVariateGenerator.seeded(12345)


@pytest.fixture
def two_scenarios():
    """Base/bull pair with probabilities summing to 1."""
    return [
        Scenario(name="base", probability=0.6, revenue_growth_rate=5, margin_improvement_rate=2),
        Scenario(name="bull", probability=0.4, revenue_growth_rate=15, margin_improvement_rate=5),
    ]


@pytest.fixture
def three_scenarios():
    """Conservative / base / optimistic set with percent probabilities."""
    return [
        Scenario(
            name="conservative", probability=25, revenue_growth_rate=-5,
            margin_improvement_rate=-1, valuation_impact=-15,
        ),
        Scenario(
            name="base", probability=50, revenue_growth_rate=10,
            margin_improvement_rate=2, valuation_impact=10,
        ),
        Scenario(
            name="optimistic", probability=25, revenue_growth_rate=30,
            margin_improvement_rate=5, valuation_impact=60,
        ),
    ]


@pytest.fixture
def base_case():
    return BaseCase(revenue=1_000_000, margin=15, valuation=5_000_000, company="Acme")


@pytest.fixture
def correlation_3x3():
    return [[1.0, 0.3, 0.2], [0.3, 1.0, 0.4], [0.2, 0.4, 1.0]]


@pytest.fixture
def settings(tmp_path):
    return Settings(log_dir=str(tmp_path / "logs"), random_seed=7)
