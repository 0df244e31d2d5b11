"""FastAPI dependency injection providers."""

from fastapi import Request

from valuecast.web.task_store import TaskStore
from valuecast.worker.dispatcher import TaskDispatcher
from valuecast.worker.engine_worker import EngineWorker


def get_worker(request: Request) -> EngineWorker:
    """Get the background calculation worker from app state."""
    return request.app.state.worker


def get_dispatcher(request: Request) -> TaskDispatcher:
    return request.app.state.worker.dispatcher


def get_task_store(request: Request) -> TaskStore:
    return request.app.state.task_store
