"""FastAPI application factory for the Valuecast API."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from valuecast.config import Settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: start the calculation worker, stop it on shutdown."""
    settings = app.state.settings
    logger.info("Starting Valuecast API...")

    from valuecast.web.task_store import TaskStore
    from valuecast.worker.dispatcher import TaskDispatcher
    from valuecast.worker.engine_worker import EngineWorker

    store = TaskStore(ttl=settings.task_ttl, maxsize=settings.task_store_size)
    worker = EngineWorker(
        dispatcher=TaskDispatcher(settings),
        settings=settings,
        on_message=store.apply,
    )
    app.state.task_store = store
    app.state.worker = worker.start()

    logger.info("Valuecast API ready")
    yield

    # Cleanup
    worker.stop(timeout=settings.worker_shutdown_timeout)
    logger.info("Valuecast API shutdown complete")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    if settings is None:
        settings = Settings()

    app = FastAPI(
        title="Valuecast API",
        description="Scenario simulation engine - Monte Carlo valuation, option pricing, correlated scenarios, tail risk",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.state.settings = settings

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "Accept"],
    )

    _register_routers(app)

    return app


def _register_routers(app: FastAPI):
    """Register all API routers."""
    from valuecast.web.routers.system import router as system_router
    from valuecast.web.routers.tasks import router as tasks_router

    app.include_router(tasks_router, prefix="/api/v1")
    app.include_router(system_router, prefix="/api/v1")
