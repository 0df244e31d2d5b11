"""System endpoints: health check."""

from fastapi import APIRouter, Depends

from valuecast.web.dependencies import get_task_store, get_worker
from valuecast.web.schemas import HealthResponse
from valuecast.web.task_store import TaskStore
from valuecast.worker.engine_worker import EngineWorker

router = APIRouter(tags=["system"])


@router.get("/health", response_model=HealthResponse)
async def health(
    worker: EngineWorker = Depends(get_worker),
    store: TaskStore = Depends(get_task_store),
):
    """API health check."""
    alive = worker.is_alive
    return HealthResponse(
        status="ok" if alive else "degraded",
        worker_alive=alive,
        tracked_tasks=len(store),
        task_types=list(worker.dispatcher.task_types),
    )
