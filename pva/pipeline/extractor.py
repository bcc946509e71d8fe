"""URL → HTML → AI extraction → database: the staged extraction pipeline."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from sqlalchemy.orm import Session, sessionmaker

from pva.config import Settings
from pva.db.models import Product, ProductVariant
from pva.extract.ai_extractor import AIContentExtractor, ExtractionResult
from pva.ingest.fetcher import FetchResult, WebPageFetcher
from pva.llm import LLMConfig
from pva.products.service import ProductService, SaveResult
from pva.schemas.extraction import ExtractedProduct

logger = logging.getLogger(__name__)

# Stage tags carried on every result
STAGE_DATABASE_SETUP = "database_setup"
STAGE_FETCH = "fetch"
STAGE_EXTRACTION = "extraction"
STAGE_DATA_VALIDATION = "data_validation"
STAGE_DATABASE_SAVE = "database_save"
STAGE_COMPLETED = "completed"

# Advisory checkpoints reported while the stages run
PROGRESS_STARTED = 10
PROGRESS_FETCHED = 30
PROGRESS_EXTRACTED = 60
PROGRESS_VALIDATED = 85

NO_STRUCTURED_DATA = "No structured data extracted from AI response"

ProgressCallback = Callable[[int], None]


@dataclass
class PipelineResult:
    success: bool
    url: str
    stage: str
    product: Product | None = None
    variants: list[ProductVariant] = field(default_factory=list)
    best_value_variant: ProductVariant | None = None
    extracted_data: ExtractedProduct | None = None
    processing_time: float = 0.0
    errors: list[str] = field(default_factory=list)
    details: dict[str, Any] = field(default_factory=dict)


def _fetch_details(result: FetchResult | None) -> dict[str, Any] | None:
    if result is None:
        return None
    return {
        "status_code": result.status_code,
        "content_length": len(result.content or ""),
        "response_time": result.response_time,
        "attempts": result.attempts,
    }


def _extraction_details(result: ExtractionResult | None) -> dict[str, Any] | None:
    if result is None:
        return None
    return {
        "model_used": result.model_used,
        "response_time": result.response_time,
        "raw_response_length": len(result.raw_response or ""),
    }


def _save_details(result: SaveResult | None) -> dict[str, Any] | None:
    if result is None:
        return None
    return {"variants_created": len(result.variants), "processing_time": result.processing_time}


class ProductDataExtractor:
    """Runs fetch → extract → validate → persist for one URL.

    Every stage failure marks the product failed through the product service
    and returns a result tagged with the failing stage. Stages never overlap.
    """

    def __init__(
        self,
        fetcher: WebPageFetcher,
        ai_extractor: AIContentExtractor,
        products: ProductService,
    ):
        self.fetcher = fetcher
        self.ai_extractor = ai_extractor
        self.products = products

    @classmethod
    def from_settings(cls, settings: Settings, session_factory: sessionmaker[Session]) -> "ProductDataExtractor":
        return cls(
            fetcher=WebPageFetcher.from_settings(settings),
            ai_extractor=AIContentExtractor(
                LLMConfig.from_settings(settings), html_char_limit=settings.pva_html_char_limit
            ),
            products=ProductService(session_factory),
        )

    def _fail(
        self,
        url: str,
        stage: str,
        errors: list[str],
        start: float,
        reason: str | None = None,
        fetch: FetchResult | None = None,
        extraction: ExtractionResult | None = None,
        save: SaveResult | None = None,
    ) -> PipelineResult:
        if reason is not None:
            self.products.mark_failed(url, reason)
        logger.warning("Extraction of %s failed at %s: %s", url, stage, "; ".join(errors))
        return PipelineResult(
            success=False,
            url=url,
            stage=stage,
            processing_time=round(time.monotonic() - start, 2),
            errors=errors,
            details={
                "fetch_result": _fetch_details(fetch),
                "extraction_result": _extraction_details(extraction),
                "database_result": _save_details(save),
            },
        )

    def extract_from_url(self, url: str, on_progress: ProgressCallback | None = None) -> PipelineResult:
        start = time.monotonic()
        report = on_progress or (lambda _pct: None)

        processing = self.products.mark_processing(url)
        if not processing.success:
            return self._fail(url, STAGE_DATABASE_SETUP, processing.errors, start)
        report(PROGRESS_STARTED)

        fetch = self.fetcher.fetch(url)
        if not fetch.success:
            return self._fail(
                url, STAGE_FETCH, fetch.errors, start,
                reason=f"Failed to fetch webpage: {', '.join(fetch.errors)}",
                fetch=fetch,
            )
        report(PROGRESS_FETCHED)

        extraction = self.ai_extractor.extract(fetch.content, url)
        if not extraction.success:
            return self._fail(
                url, STAGE_EXTRACTION, extraction.errors, start,
                reason=f"Failed to extract data: {', '.join(extraction.errors)}",
                fetch=fetch, extraction=extraction,
            )
        report(PROGRESS_EXTRACTED)

        if extraction.data is None or not extraction.data.variants:
            errors = [NO_STRUCTURED_DATA] + extraction.errors
            return self._fail(
                url, STAGE_DATA_VALIDATION, errors, start,
                reason="; ".join(errors),
                fetch=fetch, extraction=extraction,
            )
        report(PROGRESS_VALIDATED)

        save = self.products.save(extraction.data, url)
        if not save.success:
            return self._fail(
                url, STAGE_DATABASE_SAVE, save.errors, start,
                reason=f"Failed to save data: {', '.join(save.errors)}",
                fetch=fetch, extraction=extraction, save=save,
            )

        logger.info("Extracted %d variants for %s", len(save.variants), url)
        return PipelineResult(
            success=True,
            url=url,
            stage=STAGE_COMPLETED,
            product=save.product,
            variants=save.variants,
            best_value_variant=save.best_value_variant,
            extracted_data=extraction.data,
            processing_time=round(time.monotonic() - start, 2),
            details={
                "fetch_result": _fetch_details(fetch),
                "extraction_result": _extraction_details(extraction),
                "database_result": _save_details(save),
            },
        )

    def extract_without_saving(self, url: str) -> PipelineResult:
        """Fetch and extract only; nothing is written."""
        start = time.monotonic()
        fetch = self.fetcher.fetch(url)
        if not fetch.success:
            return self._fail(url, STAGE_FETCH, fetch.errors, start, fetch=fetch)

        extraction = self.ai_extractor.extract(fetch.content, url)
        if not extraction.success:
            return self._fail(url, STAGE_EXTRACTION, extraction.errors, start, fetch=fetch, extraction=extraction)

        return PipelineResult(
            success=extraction.data is not None,
            url=url,
            stage="extraction_completed",
            extracted_data=extraction.data,
            processing_time=round(time.monotonic() - start, 2),
            errors=extraction.errors,
            details={
                "fetch_result": _fetch_details(fetch),
                "extraction_result": _extraction_details(extraction),
            },
        )

    def health_check(self) -> dict[str, Any]:
        api_key_configured = bool(self.ai_extractor.config.api_key)
        db_ok = self.products.database_connected()
        if not api_key_configured:
            overall = "missing_api_key"
        elif not db_ok:
            overall = "database_error"
        else:
            overall = "ready"
        return {
            "web_fetcher": {"available": True, "class": type(self.fetcher).__name__},
            "ai_extractor": {
                "available": api_key_configured,
                "api_key_configured": api_key_configured,
                "model": self.ai_extractor.model,
                "class": type(self.ai_extractor).__name__,
            },
            "database_service": {
                "available": True,
                "database_connected": db_ok,
                "class": type(self.products).__name__,
            },
            "overall_status": overall,
        }
