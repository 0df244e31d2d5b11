"""Background execution context for the calculation engines.

One worker owns one thread. Callers talk to it only through messages:
``submit`` copies the request into the inbox, responses and progress updates
come back through the outbox (or an ``on_message`` callback). Requests run
one at a time; run several workers for concurrent simulations.
"""

import copy
import logging
import queue
import threading
from collections.abc import Iterator, Mapping
from typing import Any, Callable

from valuecast.config import Settings
from valuecast.errors import CalculationCancelled
from valuecast.worker.dispatcher import TaskDispatcher
from valuecast.worker.messages import TaskError

logger = logging.getLogger(__name__)

_STOP = object()


class EngineWorker:
    def __init__(
        self,
        dispatcher: TaskDispatcher | None = None,
        settings: Settings | None = None,
        on_message: Callable[[dict[str, Any]], None] | None = None,
        name: str = "valuecast-worker",
    ):
        self.settings = settings or (dispatcher.settings if dispatcher else Settings())
        self.dispatcher = dispatcher or TaskDispatcher(self.settings)
        self._inbox: queue.Queue = queue.Queue(maxsize=self.settings.worker_queue_size)
        self._outbox: queue.Queue = queue.Queue()
        self._deliver = on_message or self._outbox.put
        self._cancelled: set[str] = set()
        self._pending: dict[str, int] = {}
        self._lock = threading.Lock()
        self._current: str | None = None
        self._thread = threading.Thread(target=self._loop, name=name, daemon=True)
        self._started = False

    # --- Lifecycle ---

    def start(self) -> "EngineWorker":
        if not self._started:
            self._thread.start()
            self._started = True
            logger.info("Worker %s started", self._thread.name)
        return self

    def stop(self, timeout: float | None = None) -> None:
        """Finish queued work, then stop the thread."""
        if not self._started:
            return
        self._inbox.put(_STOP)
        self._thread.join(timeout)
        logger.info("Worker %s stopped", self._thread.name)

    def __enter__(self) -> "EngineWorker":
        return self.start()

    def __exit__(self, *exc_info) -> None:
        self.stop()

    @property
    def is_alive(self) -> bool:
        return self._thread.is_alive()

    @property
    def current_task(self) -> str | None:
        return self._current

    # --- Messaging ---

    def submit(self, request: Mapping[str, Any], block: bool = True, timeout: float | None = None):
        """Queue a request. Raises queue.Full when the inbox is full and not blocking."""
        message = copy.deepcopy(dict(request)) if isinstance(request, Mapping) else request
        task_id = _task_id(message)
        self._track(task_id)
        try:
            self._inbox.put(message, block=block, timeout=timeout)
        except queue.Full:
            self._release(task_id)
            raise
        logger.debug("Queued task %s (%d pending)", task_id, self._inbox.qsize())
        return task_id

    def cancel(self, task_id: str) -> bool:
        """Ask a queued or running task to stop at its next check point.

        Returns False when no task with that id is queued or running.
        """
        with self._lock:
            if task_id not in self._pending:
                return False
            self._cancelled.add(task_id)
        logger.info("Cancellation requested for task %s", task_id)
        return True

    def get_response(self, timeout: float | None = None) -> dict[str, Any]:
        """Next outbox message. Raises queue.Empty on timeout."""
        return self._outbox.get(timeout=timeout)

    def responses(self, timeout: float | None = None) -> Iterator[dict[str, Any]]:
        """Yield outbox messages until none arrives within ``timeout``."""
        while True:
            try:
                yield self._outbox.get(timeout=timeout)
            except queue.Empty:
                return

    # --- Thread body ---

    def _is_cancelled(self, task_id: str | None) -> bool:
        with self._lock:
            return task_id in self._cancelled

    def _track(self, task_id: str | None) -> None:
        if task_id is None:
            return
        with self._lock:
            self._pending[task_id] = self._pending.get(task_id, 0) + 1

    def _release(self, task_id: str | None) -> None:
        if task_id is None:
            return
        with self._lock:
            count = self._pending.pop(task_id, 0) - 1
            if count > 0:
                self._pending[task_id] = count
            else:
                self._cancelled.discard(task_id)

    def _run(self, message: Any, task_id: str | None) -> dict[str, Any]:
        if task_id is not None and self._is_cancelled(task_id):
            error = CalculationCancelled()
            return TaskError(id=task_id, error=str(error), error_type=type(error).__name__).model_dump()
        return self.dispatcher.handle(
            message,
            emit=self._deliver,
            should_cancel=lambda: self._is_cancelled(task_id),
        )

    def _loop(self) -> None:
        while True:
            message = self._inbox.get()
            if message is _STOP:
                break

            task_id = _task_id(message)
            self._current = task_id
            try:
                response = self._run(message, task_id)
            finally:
                # An id is no longer pending once its response is out
                self._current = None
                self._release(task_id)
            try:
                self._deliver(response)
            except Exception as e:
                logger.error("Worker failed to deliver response for %s: %s", task_id, e, exc_info=True)


def _task_id(message: Any) -> str | None:
    task_id = message.get("id") if isinstance(message, dict) else None
    return task_id if isinstance(task_id, str) else None
