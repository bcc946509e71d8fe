"""Extraction API: submit a URL, poll the job, export the ranking.

POST /api/extract
  → Validates the URL, records a queued job, returns { job_id } immediately.
  → Background task runs fetch → AI extract → validate → save.

GET /api/jobs/{job_id}/status
  → Poll for status and progress; the product report once completed.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from fastapi.responses import Response
from pydantic import BaseModel
from sqlalchemy.orm import Session, sessionmaker

from pva.config import get_settings
from pva.db.session import get_session_factory
from pva.ingest.fetcher import validate_url
from pva.jobs import JobNotFoundError, JobSnapshot, JobStore
from pva.pipeline import ProductDataExtractor, process
from pva.products import ProductService
from pva.report.export import EXPORT_FORMATS, ExportNotAvailableError, export_csv, export_json

logger = logging.getLogger(__name__)
router = APIRouter()

MEDIA_TYPES = {"csv": "text/csv", "json": "application/json"}


# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------

class UrlRequest(BaseModel):
    url: str = ""


class ExtractStartResponse(BaseModel):
    """Immediate response for POST /api/extract."""

    job_id: str
    status: str = "queued"
    url: str
    existing_product: bool = False
    message: str = ""


class ExistingProductInfo(BaseModel):
    id: int
    name: str
    status: str
    created_at: datetime
    updated_at: datetime
    variants_count: int
    last_extraction: str


class CheckUrlResponse(BaseModel):
    exists: bool
    product: Optional[ExistingProductInfo] = None
    error: Optional[str] = None


# ---------------------------------------------------------------------------
# Dependencies (overridden in tests)
# ---------------------------------------------------------------------------

def get_db() -> sessionmaker[Session]:
    return get_session_factory()


def _queue_job(url: str, session_factory: sessionmaker[Session], background_tasks: BackgroundTasks) -> str:
    job = JobStore(session_factory).create(url)
    background_tasks.add_task(process, job.id, session_factory)
    return job.id


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@router.post(
    "/extract",
    response_model=ExtractStartResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Start a product extraction for a URL",
)
def start_extraction(
    body: UrlRequest,
    background_tasks: BackgroundTasks,
    session_factory: sessionmaker[Session] = Depends(get_db),
):
    """Queue an extraction job; poll GET /api/jobs/{job_id}/status for progress."""
    url = body.url.strip()
    error = validate_url(url)
    if error:
        raise HTTPException(status_code=400, detail=error)

    existing = ProductService(session_factory).find_by_url(url) is not None
    job_id = _queue_job(url, session_factory, background_tasks)
    logger.info("Extraction job %s queued for %s (existing product: %s)", job_id, url, existing)

    if existing:
        message = "Updating existing product data for this URL. Previous data will be replaced with fresh results."
    else:
        message = "Product extraction started! Processing your URL now."
    return ExtractStartResponse(job_id=job_id, url=url, existing_product=existing, message=message)


@router.post("/check-url", response_model=CheckUrlResponse, summary="Look up an existing product by URL")
def check_url(body: UrlRequest, session_factory: sessionmaker[Session] = Depends(get_db)):
    url = body.url.strip()
    if validate_url(url):
        return CheckUrlResponse(exists=False, error="Invalid URL")

    product = ProductService(session_factory).find_by_url(url)
    if product is None:
        return CheckUrlResponse(exists=False)
    return CheckUrlResponse(
        exists=True,
        product=ExistingProductInfo(
            id=product.id,
            name=product.name,
            status=product.status,
            created_at=product.created_at,
            updated_at=product.updated_at,
            variants_count=len(product.variants),
            last_extraction="Completed" if product.status == "completed" else product.status.capitalize(),
        ),
    )


@router.get("/jobs/{job_id}/status", response_model=JobSnapshot, summary="Poll extraction job status")
def job_status(job_id: str, session_factory: sessionmaker[Session] = Depends(get_db)):
    try:
        return JobStore(session_factory).snapshot(job_id)
    except JobNotFoundError:
        raise HTTPException(status_code=404, detail="Job not found")


@router.get("/jobs/{job_id}/export", summary="Download a completed extraction as CSV or JSON")
def export_results(
    job_id: str,
    format: str = Query("csv", description="csv | json"),
    session_factory: sessionmaker[Session] = Depends(get_db),
):
    fmt = format.lower()
    try:
        job = JobStore(session_factory).get_with_product(job_id)
    except JobNotFoundError:
        raise HTTPException(status_code=404, detail="Job not found")
    if fmt not in EXPORT_FORMATS:
        raise HTTPException(status_code=400, detail="Invalid export format")

    try:
        filename, body = export_csv(job) if fmt == "csv" else export_json(job)
    except ExportNotAvailableError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return Response(
        content=body,
        media_type=MEDIA_TYPES[fmt],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post(
    "/products/{product_id}/update",
    response_model=ExtractStartResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Re-extract an existing product",
)
def manual_update(
    product_id: int,
    background_tasks: BackgroundTasks,
    session_factory: sessionmaker[Session] = Depends(get_db),
):
    product = ProductService(session_factory).get_product(product_id)
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")

    job_id = _queue_job(product.url, session_factory, background_tasks)
    logger.info("Manual update job %s queued for product %s", job_id, product.id)
    return ExtractStartResponse(
        job_id=job_id,
        url=product.url,
        existing_product=True,
        message=f"Manual update started for {product.name}. Fresh data will replace existing product information.",
    )


@router.get("/health", summary="Component readiness")
def health(session_factory: sessionmaker[Session] = Depends(get_db)) -> dict[str, Any]:
    """Fetcher, AI key and database readiness (Render probes /health)."""
    extractor = ProductDataExtractor.from_settings(get_settings(), session_factory)
    report = extractor.health_check()
    return {"status": "ok" if report["overall_status"] == "ready" else "degraded", **report}
