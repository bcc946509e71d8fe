"""Extraction job storage and forward-only state transitions."""

from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload, sessionmaker

from pva.db.models import ExtractionJob, JobStatus, Product
from pva.db.session import session_scope
from pva.jobs.models import (
    STATUS_DISPLAY,
    JobNotFoundError,
    JobSnapshot,
    JobStateError,
    clamp_progress,
    is_terminal,
)
from pva.report.payload import build_product_report

logger = logging.getLogger(__name__)


def _new_job_id() -> str:
    return f"job_{uuid.uuid4().hex[:16]}"


class JobStore:
    """Persist extraction jobs. Terminal jobs (completed/failed) are never changed again."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def create(self, url: str) -> ExtractionJob:
        job = ExtractionJob(id=_new_job_id(), url=url, status=JobStatus.QUEUED.value, progress=0)
        with session_scope(self._session_factory) as session:
            session.add(job)
        logger.info("Created extraction job %s for %s", job.id, url)
        return job

    def get(self, job_id: str) -> ExtractionJob | None:
        with self._session_factory() as session:
            return session.get(ExtractionJob, job_id)

    def _load_for_update(self, session: Session, job_id: str) -> ExtractionJob:
        job = session.get(ExtractionJob, job_id, with_for_update=True)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def _transition(self, job_id: str, requires: JobStatus | None = None, **changes: Any) -> ExtractionJob:
        with session_scope(self._session_factory) as session:
            job = self._load_for_update(session, job_id)
            if is_terminal(job.status):
                logger.info("Job %s already %s; ignoring update", job_id, job.status)
                return job
            if requires is not None and job.status != requires.value:
                raise JobStateError(job_id, job.status, changes["status"])
            for name, value in changes.items():
                setattr(job, name, value)
        return job

    def start(self, job_id: str) -> ExtractionJob:
        return self._transition(job_id, status=JobStatus.PROCESSING.value, progress=0)

    def update_progress(self, job_id: str, progress: int) -> ExtractionJob:
        """Advisory progress; clamped to [0, 100] and never moves backwards."""
        with session_scope(self._session_factory) as session:
            job = self._load_for_update(session, job_id)
            if not is_terminal(job.status):
                job.progress = max(job.progress, clamp_progress(progress))
        return job

    def complete(self, job_id: str, product_id: int, result_data: dict[str, Any] | None = None) -> ExtractionJob:
        return self._transition(
            job_id,
            requires=JobStatus.PROCESSING,
            status=JobStatus.COMPLETED.value,
            progress=100,
            product_id=product_id,
            result_data=result_data,
            error_message=None,
        )

    def fail(self, job_id: str, error_message: str) -> ExtractionJob:
        return self._transition(
            job_id,
            status=JobStatus.FAILED.value,
            progress=0,
            product_id=None,
            result_data=None,
            error_message=error_message or "Extraction failed",
        )

    def get_with_product(self, job_id: str) -> ExtractionJob:
        """Job with its product and variants loaded, detached from the session."""
        with self._session_factory() as session:
            job = session.scalar(
                select(ExtractionJob)
                .options(selectinload(ExtractionJob.product).selectinload(Product.variants))
                .where(ExtractionJob.id == job_id)
            )
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def snapshot(self, job_id: str) -> JobSnapshot:
        """Read-only view for pollers; product payload only once completed."""
        with self._session_factory() as session:
            job = session.scalar(
                select(ExtractionJob)
                .options(selectinload(ExtractionJob.product).selectinload(Product.variants))
                .where(ExtractionJob.id == job_id)
            )
            if job is None:
                raise JobNotFoundError(job_id)

            status = JobStatus(job.status)
            snap = JobSnapshot(
                id=job.id,
                status=status,
                progress=job.progress,
                status_display=STATUS_DISPLAY[status],
                progress_display=f"{job.progress}%",
                url=job.url,
                created_at=job.created_at,
                finished=job.finished,
            )
            if status == JobStatus.COMPLETED and job.product is not None:
                snap.product = build_product_report(job.product)
                snap.processing_time = (job.result_data or {}).get("processing_time")
            elif status == JobStatus.FAILED:
                snap.error_message = job.error_message
            return snap
