"""CSV and JSON exports of a completed extraction."""

from __future__ import annotations

import csv
import io
import json
import re
from datetime import date
from typing import Any

from pva.db.models import ExtractionJob, JobStatus, Product
from pva.report.payload import variant_details
from pva.value.ranking import price_range, value_analysis

CSV_COLUMNS = [
    "Variant Name",
    "Price",
    "Quantity",
    "Price Per Unit",
    "Value Rank",
    "Best Value",
    "Savings vs Worst",
    "Savings %",
]

EXPORT_FORMATS = ("csv", "json")


class ExportNotAvailableError(ValueError):
    """Raised when a job has no completed product to export."""


def export_filename(product_name: str, kind: str, extension: str, today: date | None = None) -> str:
    """``Acme_Coffee_variants_20250627.csv``; anything but [0-9A-Za-z.-] becomes '_'."""
    safe = re.sub(r"[^0-9A-Za-z.\-]", "_", product_name)
    stamp = (today or date.today()).strftime("%Y%m%d")
    return f"{safe}_{kind}_{stamp}.{extension}"


def _exportable_product(job: ExtractionJob) -> Product:
    if job.status != JobStatus.COMPLETED.value or job.product is None:
        raise ExportNotAvailableError("Results not available for export")
    return job.product


def export_csv(job: ExtractionJob) -> tuple[str, str]:
    """Return (filename, csv text) with one row per variant."""
    product = _exportable_product(job)
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(CSV_COLUMNS)
    for variant in variant_details(list(product.variants)):
        savings = variant["savings_vs_worst"]
        writer.writerow([
            variant["name"],
            variant["price_display"],
            variant["quantity_text"],
            variant["price_per_unit_display"],
            variant["value_rank"] if variant["value_rank"] is not None else "N/A",
            "Yes" if variant["is_best_value"] else "No",
            savings["savings_display"] if savings else "N/A",
            f"{savings['savings_percentage']}%" if savings else "N/A",
        ])
    return export_filename(product.name, "variants", "csv"), buf.getvalue()


def export_payload(job: ExtractionJob) -> dict[str, Any]:
    product = _exportable_product(job)
    variants = list(product.variants)
    currency = variants[0].currency if variants else "USD"
    return {
        "extraction_job": {
            "id": job.id,
            "url": job.url,
            "extracted_at": job.updated_at.isoformat() if job.updated_at else None,
            "processing_time": (job.result_data or {}).get("processing_time"),
        },
        "product": {
            "name": product.name,
            "variants_count": len(variants),
            "variants": variant_details(variants),
            "price_range": price_range(variants, currency),
            "value_analysis": value_analysis(variants, currency),
        },
    }


def export_json(job: ExtractionJob) -> tuple[str, str]:
    """Return (filename, JSON text) bundling job metadata and the product report."""
    product = _exportable_product(job)
    body = json.dumps(export_payload(job), indent=2, ensure_ascii=False)
    return export_filename(product.name, "data", "json"), body
