"""Extraction job status and the read-only snapshot served to pollers."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from pva.db.models import TERMINAL_JOB_STATUSES, JobStatus

STATUS_DISPLAY = {
    JobStatus.QUEUED: "Queued for processing",
    JobStatus.PROCESSING: "Extracting product data",
    JobStatus.COMPLETED: "Extraction completed",
    JobStatus.FAILED: "Extraction failed",
}


class JobNotFoundError(LookupError):
    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Extraction job not found: {job_id}")


class JobStateError(RuntimeError):
    """A transition was requested from a status that does not allow it."""

    def __init__(self, job_id: str, status: str, target: str):
        self.job_id = job_id
        self.status = status
        super().__init__(f"Extraction job {job_id} cannot move from {status} to {target}")


def is_terminal(status: str | JobStatus) -> bool:
    return JobStatus(status).value in TERMINAL_JOB_STATUSES


def clamp_progress(value: int) -> int:
    return max(0, min(100, int(value)))


class JobSnapshot(BaseModel):
    """Extraction job as seen by a polling client."""

    id: str
    status: JobStatus
    progress: int = Field(default=0, ge=0, le=100)
    status_display: str = ""
    progress_display: str = "0%"
    url: str
    created_at: datetime | None = None
    finished: bool = False
    product: dict[str, Any] | None = None
    processing_time: float | None = None
    error_message: str | None = None

