"""Tests for the HTTP API."""

import time

import pytest
from fastapi.testclient import TestClient

from valuecast.web.app import create_app
from valuecast.web.task_store import DONE, FAILED, PENDING, RUNNING, TaskStore

OPTION_PARAMS = {
    "spotPrice": 100,
    "strikePrice": 100,
    "timeToExpiry": 1,
    "volatility": 0.2,
    "riskFreeRate": 0.05,
}


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as c:
        yield c


def poll(client, task_id, timeout=30):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        data = client.get(f"/api/v1/tasks/{task_id}").json()["data"]
        if data["status"] in (DONE, FAILED):
            return data
        time.sleep(0.02)
    raise AssertionError(f"task {task_id} did not finish")


class TestHealth:
    def test_health(self, client):
        resp = client.get("/api/v1/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ok"
        assert body["worker_alive"] is True
        assert "monte-carlo" in body["task_types"]


class TestTasks:
    def test_submit_and_poll(self, client):
        resp = client.post(
            "/api/v1/tasks", json={"id": "op-1", "type": "option-pricing", "params": OPTION_PARAMS}
        )
        assert resp.status_code == 202
        assert resp.json()["data"] == {"id": "op-1", "type": "option-pricing", "status": PENDING}

        data = poll(client, "op-1")
        assert data["status"] == DONE
        assert data["progress"] == 100.0
        assert data["result"]["call"]["price"] == pytest.approx(10.45, abs=0.01)

    def test_generated_id(self, client):
        resp = client.post("/api/v1/tasks", json={"type": "option-pricing", "params": OPTION_PARAMS})
        task_id = resp.json()["data"]["id"]
        assert task_id
        assert poll(client, task_id)["status"] == DONE

    def test_monte_carlo_task(self, client):
        params = {
            "scenarios": [
                {"name": "base", "probability": 60, "revenueGrowthRate": 5, "marginImprovementRate": 2},
                {"name": "bull", "probability": 40, "revenueGrowthRate": 15, "marginImprovementRate": 5},
            ],
            "iterations": 2000,
            "timeHorizonMonths": 12,
            "volatility": 0.2,
        }
        client.post("/api/v1/tasks", json={"id": "mc", "type": "monte-carlo", "params": params})
        data = poll(client, "mc")
        assert data["status"] == DONE
        assert 0.9 <= data["result"]["mean"] <= 1.5

    def test_failed_task(self, client):
        params = dict(OPTION_PARAMS, spotPrice=-1)
        client.post("/api/v1/tasks", json={"id": "bad", "type": "option-pricing", "params": params})
        data = poll(client, "bad")
        assert data["status"] == FAILED
        assert data["error_type"] == "ValidationError"

    def test_unknown_type(self, client):
        resp = client.post("/api/v1/tasks", json={"type": "foo", "params": {}})
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Unknown calculation type: foo"

    def test_missing_task(self, client):
        assert client.get("/api/v1/tasks/nope").status_code == 404

    def test_cancel_missing(self, client):
        assert client.post("/api/v1/tasks/nope/cancel").status_code == 404

    def test_cancel_finished(self, client):
        client.post("/api/v1/tasks", json={"id": "op", "type": "option-pricing", "params": OPTION_PARAMS})
        poll(client, "op")
        assert client.post("/api/v1/tasks/op/cancel").status_code == 409

    def test_resubmit_after_rejected_cancel(self, client):
        client.post("/api/v1/tasks", json={"id": "again", "type": "option-pricing", "params": OPTION_PARAMS})
        poll(client, "again")
        client.post("/api/v1/tasks/again/cancel")
        client.post("/api/v1/tasks", json={"id": "again", "type": "option-pricing", "params": OPTION_PARAMS})
        data = poll(client, "again")
        assert data["status"] == DONE
        assert data["result"]["call"]["price"] == pytest.approx(10.45, abs=0.01)

    def test_portfolio_task(self, client):
        params = {
            "positions": [
                dict(OPTION_PARAMS, optionType="call", quantity=2),
                dict(OPTION_PARAMS, optionType="put"),
            ]
        }
        resp = client.post("/api/v1/tasks/run", json={"id": "pf", "type": "options-portfolio", "params": params})
        result = resp.json()["result"]
        assert result["total_value"] == pytest.approx(2 * 10.45 + 5.57, abs=0.03)
        assert result["risk_metrics"]["max_gain"] is None


class TestRun:
    def test_run_sync(self, client):
        resp = client.post("/api/v1/tasks/run", json={"id": "s1", "type": "option-pricing", "params": OPTION_PARAMS})
        assert resp.status_code == 200
        body = resp.json()
        assert body["id"] == "s1"
        assert body["error"] is None
        assert body["result"]["put"]["price"] == pytest.approx(5.57, abs=0.01)

    def test_run_unknown_type(self, client):
        body = client.post("/api/v1/tasks/run", json={"id": "s2", "type": "foo"}).json()
        assert body["result"] is None
        assert body["error"] == "Unknown calculation type: foo"


class TestTaskStore:
    def test_lifecycle(self):
        store = TaskStore()
        store.create("t", "monte-carlo")
        assert store.is_active("t")
        store.apply({"id": "progress", "progress": 40.0, "task_id": "t"})
        record = store.get("t")
        assert record["status"] == RUNNING
        assert record["progress"] == 40.0
        store.apply({"id": "t", "result": {"mean": 1.0}})
        record = store.get("t")
        assert record["status"] == DONE
        assert record["result"] == {"mean": 1.0}
        assert not store.is_active("t")

    def test_finished_record_is_final(self):
        store = TaskStore()
        store.create("t", "var-calculation")
        store.apply({"id": "t", "error": "Calculation cancelled", "error_type": "CalculationCancelled"})
        store.apply({"id": "progress", "progress": 90.0, "task_id": "t"})
        assert store.get("t")["status"] == FAILED

    def test_unknown_task_ignored(self):
        store = TaskStore()
        store.apply({"id": "ghost", "result": {}})
        assert len(store) == 0

    def test_expiry(self):
        store = TaskStore(ttl=0.01)
        store.create("t", "monte-carlo")
        time.sleep(0.05)
        assert store.get("t") is None
