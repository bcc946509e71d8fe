"""Extraction job storage and retrieval."""

from pva.jobs.models import JobNotFoundError, JobSnapshot, JobStateError, JobStatus
from pva.jobs.store import JobStore

__all__ = ["JobNotFoundError", "JobSnapshot", "JobStateError", "JobStatus", "JobStore"]
