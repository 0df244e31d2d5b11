"""In-memory task status store backed by a TTL cache.

Written from the worker thread (progress / responses) and read from request
handlers, so every access goes through a lock.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Any

from cachetools import TTLCache

from valuecast.worker.messages import PROGRESS_ID

logger = logging.getLogger(__name__)

PENDING = "pending"
RUNNING = "running"
DONE = "done"
FAILED = "failed"

ACTIVE_STATUSES = (PENDING, RUNNING)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class TaskStore:
    """Latest known state per task id."""

    def __init__(self, ttl: int = 3600, maxsize: int = 1024):
        self._ttl = ttl
        self._tasks: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl)
        self._lock = threading.Lock()

    def create(self, task_id: str, task_type: str) -> dict[str, Any]:
        record = {
            "id": task_id,
            "type": task_type,
            "status": PENDING,
            "progress": 0.0,
            "result": None,
            "error": None,
            "error_type": None,
            "submitted_at": _now(),
            "updated_at": _now(),
        }
        with self._lock:
            self._tasks[task_id] = record
        return dict(record)

    def get(self, task_id: str) -> dict[str, Any] | None:
        with self._lock:
            record = self._tasks.get(task_id)
            return dict(record) if record is not None else None

    def is_active(self, task_id: str) -> bool:
        record = self.get(task_id)
        return record is not None and record["status"] in ACTIVE_STATUSES

    def discard(self, task_id: str) -> None:
        with self._lock:
            self._tasks.pop(task_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)

    def apply(self, message: dict[str, Any]) -> None:
        """Fold a worker message (progress, result or error) into the store."""
        if message.get("id") == PROGRESS_ID:
            task_id = message.get("task_id")
            updates = {"status": RUNNING, "progress": float(message.get("progress", 0.0))}
        elif "error" in message and message.get("error") is not None:
            task_id = message.get("id")
            updates = {
                "status": FAILED,
                "error": message["error"],
                "error_type": message.get("error_type"),
            }
        else:
            task_id = message.get("id")
            updates = {"status": DONE, "progress": 100.0, "result": message.get("result")}

        with self._lock:
            record = self._tasks.get(task_id)
            if record is None:
                logger.debug("Dropping message for unknown or expired task %s", task_id)
                return
            if record["status"] in (DONE, FAILED):
                return
            record.update(updates)
            record["updated_at"] = _now()
            # reassign to refresh the TTL
            self._tasks[task_id] = record
