"""Tests for the background engine worker."""

import queue
import time

import pytest

from valuecast.analysis.variates import RandomVariateGenerator
from valuecast.worker.dispatcher import TaskDispatcher
from valuecast.worker.engine_worker import EngineWorker
from valuecast.worker.messages import PROGRESS_ID

TIMEOUT = 30


@pytest.fixture
def worker(settings):
    dispatcher = TaskDispatcher(settings, variates_factory=lambda: RandomVariateGenerator.seeded(1))
    w = EngineWorker(dispatcher, settings=settings)
    yield w
    w.stop(timeout=TIMEOUT)


def option_request(task_id="op-1"):
    return {
        "id": task_id,
        "type": "option-pricing",
        "params": {
            "spotPrice": 100,
            "strikePrice": 100,
            "timeToExpiry": 1,
            "volatility": 0.2,
            "riskFreeRate": 0.05,
        },
    }


def monte_carlo_request(task_id="mc-1", iterations=2000, months=12):
    return {
        "id": task_id,
        "type": "monte-carlo",
        "params": {
            "scenarios": [
                {"name": "a", "probability": 30, "revenueGrowthRate": 5},
                {"name": "b", "probability": 40, "revenueGrowthRate": 10},
                {"name": "c", "probability": 30, "revenueGrowthRate": 20},
            ],
            "iterations": iterations,
            "timeHorizonMonths": months,
            "volatility": 0.25,
        },
    }


def wait_for(worker, task_id):
    """Collect outbox messages up to and including the response for ``task_id``."""
    seen = []
    while True:
        message = worker.get_response(timeout=TIMEOUT)
        seen.append(message)
        if message["id"] == task_id:
            return seen


class TestLifecycle:
    def test_start_stop(self, worker):
        assert not worker.is_alive
        worker.start()
        assert worker.is_alive
        worker.stop(timeout=TIMEOUT)
        assert not worker.is_alive

    def test_context_manager(self, settings):
        with EngineWorker(settings=settings) as w:
            w.submit(option_request())
            response = w.get_response(timeout=TIMEOUT)
            assert "result" in response
        assert not w.is_alive

    def test_stop_without_start(self, worker):
        worker.stop()


class TestMessaging:
    def test_option_pricing_roundtrip(self, worker):
        worker.start()
        assert worker.submit(option_request()) == "op-1"
        response = worker.get_response(timeout=TIMEOUT)
        assert response["id"] == "op-1"
        assert response["result"]["call"]["price"] == pytest.approx(10.45, abs=0.01)

    def test_progress_precedes_result(self, worker):
        worker.start()
        worker.submit(monte_carlo_request())
        messages = wait_for(worker, "mc-1")
        assert len(messages) > 1
        assert all(m["id"] == PROGRESS_ID for m in messages[:-1])
        assert "result" in messages[-1]

    def test_requests_run_in_order(self, worker):
        worker.start()
        worker.submit(option_request("first"))
        worker.submit(monte_carlo_request("second", iterations=500))
        worker.submit(option_request("third"))
        finals = [m["id"] for m in wait_for(worker, "third") if m["id"] != PROGRESS_ID]
        assert finals == ["first", "second", "third"]

    def test_request_is_copied(self, worker):
        request = option_request()
        worker.submit(request)
        request["params"]["spotPrice"] = 0
        worker.start()
        assert "result" in worker.get_response(timeout=TIMEOUT)

    def test_errors_become_messages(self, worker):
        worker.start()
        worker.submit({"id": "bad", "type": "foo", "params": {}})
        response = worker.get_response(timeout=TIMEOUT)
        assert response["error_type"] == "UnknownTaskTypeError"
        assert worker.is_alive

    def test_responses_generator_stops_when_idle(self, worker):
        worker.start()
        worker.submit(option_request("a"))
        worker.submit(option_request("b"))
        ids = [m["id"] for m in worker.responses(timeout=2)]
        assert ids == ["a", "b"]

    def test_on_message_callback(self, settings):
        received = []
        with EngineWorker(settings=settings, on_message=received.append) as w:
            w.submit(option_request())
            deadline = time.monotonic() + TIMEOUT
            while not received and time.monotonic() < deadline:
                time.sleep(0.01)
        assert received[0]["id"] == "op-1"

    def test_queue_full(self, settings):
        w = EngineWorker(settings=settings.model_copy(update={"worker_queue_size": 1}))
        w.submit(option_request("a"))
        with pytest.raises(queue.Full):
            w.submit(option_request("b"), block=False)


class TestCancellation:
    def test_cancel_queued_task(self, worker):
        worker.submit(option_request("queued"))
        worker.cancel("queued")
        worker.start()
        response = worker.get_response(timeout=TIMEOUT)
        assert response == {
            "id": "queued",
            "error": "Calculation cancelled",
            "error_type": "CalculationCancelled",
        }

    def test_cancel_running_task(self, worker):
        worker.start()
        worker.submit(monte_carlo_request("long", iterations=1_000_000, months=60))
        first = worker.get_response(timeout=TIMEOUT)
        assert first["id"] == PROGRESS_ID
        worker.cancel("long")
        final = wait_for(worker, "long")[-1]
        assert final["error_type"] == "CalculationCancelled"

    def test_cancel_does_not_leak_to_later_tasks(self, worker):
        worker.submit(option_request("x"))
        worker.cancel("x")
        worker.start()
        assert "error" in worker.get_response(timeout=TIMEOUT)
        worker.submit(option_request("x"))
        assert "result" in worker.get_response(timeout=TIMEOUT)

    def test_cancel_after_completion_is_ignored(self, worker):
        worker.start()
        worker.submit(option_request("done"))
        assert "result" in worker.get_response(timeout=TIMEOUT)
        assert worker.cancel("done") is False
        worker.submit(option_request("done"))
        response = worker.get_response(timeout=TIMEOUT)
        assert response["id"] == "done"
        assert "result" in response

    def test_cancel_unknown_id(self, worker):
        assert worker.cancel("never-submitted") is False
        assert worker._cancelled == set()

    def test_cancel_queued_returns_true(self, worker):
        worker.submit(option_request("q"))
        assert worker.cancel("q") is True

    def test_bookkeeping_cleared_after_run(self, worker):
        worker.start()
        worker.submit(option_request("a"))
        worker.get_response(timeout=TIMEOUT)
        assert worker._pending == {}

    def test_queue_full_releases_id(self, settings):
        w = EngineWorker(settings=settings.model_copy(update={"worker_queue_size": 1}))
        w.submit(option_request("a"))
        with pytest.raises(queue.Full):
            w.submit(option_request("b"), block=False)
        assert w.cancel("b") is False
