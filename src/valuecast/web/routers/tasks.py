"""Calculation task endpoints: submit, poll, cancel, run synchronously."""

import logging
import queue
import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.concurrency import run_in_threadpool

from valuecast.web.dependencies import get_dispatcher, get_task_store, get_worker
from valuecast.web.schemas import ApiResponse, TaskAccepted, TaskOutcome, TaskStatus, TaskSubmission
from valuecast.web.task_store import ACTIVE_STATUSES, TaskStore
from valuecast.worker.dispatcher import TaskDispatcher
from valuecast.worker.engine_worker import EngineWorker

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.post(
    "",
    response_model=ApiResponse[TaskAccepted],
    status_code=status.HTTP_202_ACCEPTED,
)
async def submit_task(
    submission: TaskSubmission,
    worker: EngineWorker = Depends(get_worker),
    store: TaskStore = Depends(get_task_store),
):
    """Queue a calculation on the background worker."""
    if submission.type not in worker.dispatcher.task_types:
        raise HTTPException(status_code=400, detail=f"Unknown calculation type: {submission.type}")

    task_id = submission.id or uuid.uuid4().hex
    if store.is_active(task_id):
        raise HTTPException(status_code=409, detail=f"Task {task_id} is already running")

    record = store.create(task_id, submission.type)
    try:
        worker.submit(
            {"id": task_id, "type": submission.type, "params": submission.params},
            block=False,
        )
    except queue.Full:
        store.discard(task_id)
        raise HTTPException(status_code=503, detail="Worker queue is full, retry later")

    return ApiResponse(data=TaskAccepted(id=task_id, type=submission.type, status=record["status"]))


@router.post("/run", response_model=TaskOutcome)
async def run_task(
    submission: TaskSubmission,
    dispatcher: TaskDispatcher = Depends(get_dispatcher),
):
    """Dispatch a calculation and wait for it. Progress updates are discarded."""
    request = {
        "id": submission.id or uuid.uuid4().hex,
        "type": submission.type,
        "params": submission.params,
    }
    response = await run_in_threadpool(dispatcher.handle, request)
    return TaskOutcome(**response)


@router.get("/{task_id}", response_model=ApiResponse[TaskStatus])
async def get_task(task_id: str, store: TaskStore = Depends(get_task_store)):
    """Latest status, progress and (when finished) result of a task."""
    record = store.get(task_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"No task {task_id}")
    return ApiResponse(data=TaskStatus(**record))


@router.post(
    "/{task_id}/cancel",
    response_model=ApiResponse[TaskStatus],
    status_code=status.HTTP_202_ACCEPTED,
)
async def cancel_task(
    task_id: str,
    worker: EngineWorker = Depends(get_worker),
    store: TaskStore = Depends(get_task_store),
):
    """Request cooperative cancellation of a pending or running task."""
    record = store.get(task_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"No task {task_id}")
    if record["status"] not in ACTIVE_STATUSES:
        raise HTTPException(status_code=409, detail=f"Task {task_id} already {record['status']}")

    if not worker.cancel(task_id):
        raise HTTPException(status_code=409, detail=f"Task {task_id} is no longer running")
    return ApiResponse(data=TaskStatus(**record))
