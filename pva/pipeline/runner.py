"""Worker entry point: drive one extraction job to a terminal state."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session, sessionmaker

from pva.config import get_settings
from pva.db.session import get_session_factory
from pva.jobs.models import JobNotFoundError
from pva.jobs.store import JobStore
from pva.pipeline.extractor import ProductDataExtractor

logger = logging.getLogger(__name__)


def run_extraction_job(job_id: str, jobs: JobStore, extractor: ProductDataExtractor) -> None:
    """Process a queued job exactly once per delivery.

    Already-finished jobs are skipped, so duplicate deliveries are harmless.
    Unexpected errors mark the job and product failed, then propagate so the
    task queue can apply its own retry policy.
    """
    job = jobs.get(job_id)
    if job is None:
        raise JobNotFoundError(job_id)
    if job.finished:
        logger.info("Job %s already %s; skipping", job_id, job.status)
        return

    try:
        jobs.start(job_id)
        result = extractor.extract_from_url(
            job.url, on_progress=lambda pct: jobs.update_progress(job_id, pct)
        )
        if result.success:
            jobs.complete(
                job_id,
                product_id=result.product.id,
                result_data={
                    "variants_count": len(result.variants),
                    "best_value_variant_id": result.best_value_variant.id if result.best_value_variant else None,
                    "processing_time": result.processing_time,
                    "details": result.details,
                },
            )
            logger.info("Job %s completed: %s (%d variants)", job_id, result.product.name, len(result.variants))
        else:
            error_message = "; ".join(result.errors) or f"Extraction failed at {result.stage}"
            jobs.fail(job_id, error_message)
            logger.error("Job %s failed at %s: %s", job_id, result.stage, error_message)
    except Exception as e:
        logger.exception("Unexpected error in extraction job %s", job_id)
        jobs.fail(job_id, f"Unexpected error: {e}")
        extractor.products.mark_failed(job.url, f"Unexpected error: {e}")
        raise


def process(job_id: str, session_factory: sessionmaker[Session] | None = None) -> None:
    """Queue-facing entry point wired from settings."""
    session_factory = session_factory or get_session_factory()
    extractor = ProductDataExtractor.from_settings(get_settings(), session_factory)
    run_extraction_job(job_id, JobStore(session_factory), extractor)
