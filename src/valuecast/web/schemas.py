"""Pydantic request/response schemas for the Valuecast API."""

from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


# --- Base schemas ---


class Meta(BaseModel):
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ApiResponse(BaseModel, Generic[T]):
    data: T
    meta: Meta = Field(default_factory=Meta)


# --- Task schemas ---


class TaskSubmission(BaseModel):
    id: str | None = Field(None, description="Client-chosen task id (generated when omitted)")
    type: str = Field(description="Calculation type, e.g. monte-carlo")
    params: dict[str, Any] = Field(default_factory=dict)


class TaskAccepted(BaseModel):
    id: str
    type: str
    status: str


class TaskStatus(BaseModel):
    id: str
    type: str
    status: str = Field(description="pending, running, done or failed")
    progress: float = Field(0.0, ge=0, le=100)
    result: dict[str, Any] | None = None
    error: str | None = None
    error_type: str | None = None
    submitted_at: str
    updated_at: str


class TaskOutcome(BaseModel):
    """Synchronous dispatch response, mirroring the worker message shape."""

    id: str | None
    result: dict[str, Any] | None = None
    error: str | None = None
    error_type: str | None = None


# --- System schemas ---


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    service: str = "valuecast-api"
    worker_alive: bool = True
    tracked_tasks: int = 0
    task_types: list[str] = []
