"""Tests for the command-line interface."""

import json

import pytest
from click.testing import CliRunner

from valuecast.__main__ import cli
from valuecast.worker.messages import TaskType


@pytest.fixture
def runner(tmp_path, monkeypatch):
    monkeypatch.setenv("VC_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("VC_LOG_LEVEL", "ERROR")
    return CliRunner()


OPTION_REQUEST = {
    "id": "1",
    "type": "option-pricing",
    "params": {"spotPrice": 100, "strikePrice": 100, "timeToExpiry": 1, "volatility": 0.2, "riskFreeRate": 0.05},
}


class TestRun:
    def test_run_from_stdin(self, runner):
        result = runner.invoke(cli, ["run", "-"], input=json.dumps(OPTION_REQUEST))
        assert result.exit_code == 0
        assert '"call"' in result.output
        assert '"put"' in result.output

    def test_run_from_file(self, runner, tmp_path):
        path = tmp_path / "request.json"
        path.write_text(json.dumps(OPTION_REQUEST))
        result = runner.invoke(cli, ["run", str(path)])
        assert result.exit_code == 0
        assert '"id": "1"' in result.output

    def test_run_with_progress(self, runner):
        request = {
            "id": "mc",
            "type": "monte-carlo",
            "params": {
                "scenarios": [{"probability": 100, "revenueGrowthRate": 10}],
                "iterations": 200,
                "timeHorizonMonths": 6,
                "volatility": 0.2,
            },
        }
        result = runner.invoke(cli, ["run", "--seed", "3"], input=json.dumps(request))
        assert result.exit_code == 0
        assert "progress:" in result.output
        assert '"mean"' in result.output

    def test_run_quiet(self, runner):
        request = {
            "id": "mc",
            "type": "monte-carlo",
            "params": {
                "scenarios": [{"probability": 100, "revenueGrowthRate": 10}],
                "iterations": 200,
                "timeHorizonMonths": 6,
                "volatility": 0.2,
            },
        }
        result = runner.invoke(cli, ["run", "-q"], input=json.dumps(request))
        assert result.exit_code == 0
        assert "progress:" not in result.output

    def test_run_error_exit_code(self, runner):
        result = runner.invoke(cli, ["run"], input=json.dumps({"id": "x", "type": "foo"}))
        assert result.exit_code == 1
        assert "Unknown calculation type: foo" in result.output

    def test_run_invalid_json(self, runner):
        result = runner.invoke(cli, ["run"], input="{not json")
        assert result.exit_code == 2
        assert "Invalid JSON" in result.output


class TestPriceOption:
    def test_table(self, runner):
        result = runner.invoke(cli, ["price-option", "-s", "100", "-k", "100", "-t", "1", "--vol", "0.2", "-r", "0.05"])
        assert result.exit_code == 0
        assert "Moneyness (S/K): 1.0000" in result.output
        assert "10.45" in result.output

    def test_invalid_input(self, runner):
        result = runner.invoke(cli, ["price-option", "-s", "0", "-k", "100", "-t", "1", "--vol", "0.2"])
        assert result.exit_code == 2
        assert "spot_price must be positive" in result.output


class TestTaskTypes:
    def test_lists_all(self, runner):
        result = runner.invoke(cli, ["task-types"])
        assert result.exit_code == 0
        assert result.output.split() == [t.value for t in TaskType]
