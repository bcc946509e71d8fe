"""Tests for the staged pipeline and the job runner."""

import json

import httpx
import pytest

from pva.db.models import JobStatus, ProductStatus
from pva.jobs import JobNotFoundError, JobStore
from pva.llm.base import LLMConfig, LLMRateLimitError
from pva.pipeline import run_extraction_job
from pva.pipeline.extractor import NO_STRUCTURED_DATA
from pva.products.service import ProductService, SaveResult, StatusResult
from tests.fakes import PRODUCT_URL, FakeLLMProvider, coke_data, html_transport


@pytest.fixture
def store(session_factory):
    return JobStore(session_factory)


class FailingSave(ProductService):
    def save(self, extracted_data, url):
        return SaveResult(success=False, errors=["Database error: disk full"])


class LockedDatabase(ProductService):
    def mark_processing(self, url):
        return StatusResult(success=False, errors=["Error updating product status: database is locked"])


def _timeouts():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    return httpx.MockTransport(handler)


# --- ProductDataExtractor ---


def test_extract_from_url_success(make_pipeline, products):
    progress = []
    result = make_pipeline().extract_from_url(PRODUCT_URL, on_progress=progress.append)

    assert result.success is True
    assert result.stage == "completed"
    assert result.errors == []
    assert result.best_value_variant.name == "20 oz Bottle"
    assert progress == [10, 30, 60, 85]
    assert result.details["fetch_result"]["status_code"] == 200
    assert result.details["extraction_result"]["model_used"] == "gpt-3.5-turbo"
    assert result.details["database_result"]["variants_created"] == 2
    assert products.find_by_url(PRODUCT_URL).status == ProductStatus.COMPLETED.value


def test_fetch_failure_marks_product_failed(make_pipeline, products):
    llm = FakeLLMProvider()
    result = make_pipeline(transport=_timeouts(), llm=llm).extract_from_url(PRODUCT_URL)

    assert result.success is False
    assert result.stage == "fetch"
    assert result.errors == ["Request timed out after 3 retries"]
    assert llm.calls == []
    assert products.find_by_url(PRODUCT_URL).status == ProductStatus.FAILED.value


def test_extraction_failure_stage(make_pipeline, products):
    llm = FakeLLMProvider(error=LLMRateLimitError("429"))
    result = make_pipeline(llm=llm).extract_from_url(PRODUCT_URL)

    assert result.stage == "extraction"
    assert result.errors == ["Rate limit exceeded: Please try again later"]
    assert products.find_by_url(PRODUCT_URL).status == ProductStatus.FAILED.value


def test_unusable_content_fails_validation_stage(make_pipeline, products):
    llm = FakeLLMProvider(response=json.dumps({"product": {"name": "X"}, "variants": []}))
    progress = []
    result = make_pipeline(llm=llm).extract_from_url(PRODUCT_URL, on_progress=progress.append)

    assert result.stage == "data_validation"
    assert result.errors == [NO_STRUCTURED_DATA, "At least one variant is required"]
    assert progress == [10, 30, 60]
    assert products.find_by_url(PRODUCT_URL).status == ProductStatus.FAILED.value


def test_save_failure_marks_product_failed(make_pipeline, session_factory, products):
    progress = []
    pipeline = make_pipeline(products=FailingSave(session_factory))
    result = pipeline.extract_from_url(PRODUCT_URL, on_progress=progress.append)

    assert result.success is False
    assert result.stage == "database_save"
    assert result.errors == ["Database error: disk full"]
    assert progress == [10, 30, 60, 85]
    assert products.find_by_url(PRODUCT_URL).status == ProductStatus.FAILED.value


def test_out_of_range_quantity_fails_save_stage(make_pipeline, products):
    data = {"product": {"name": "Dust"}, "variants": [{"name": "Speck", "quantity_numeric": 1e-300, "price_cents": 129}]}
    result = make_pipeline(llm=FakeLLMProvider(response=json.dumps(data))).extract_from_url(PRODUCT_URL)

    assert result.stage == "database_save"
    assert result.errors[0].startswith("Database error:")
    assert products.find_by_url(PRODUCT_URL).status == ProductStatus.FAILED.value


def test_database_setup_failure_stops_before_fetch(make_pipeline, session_factory, products):
    transport = html_transport()
    llm = FakeLLMProvider()
    pipeline = make_pipeline(transport=transport, llm=llm, products=LockedDatabase(session_factory))
    result = pipeline.extract_from_url(PRODUCT_URL)

    assert result.success is False
    assert result.stage == "database_setup"
    assert result.errors == ["Error updating product status: database is locked"]
    assert transport.requests == []
    assert llm.calls == []
    assert products.find_by_url(PRODUCT_URL) is None


def test_stages_run_in_order_and_stop_at_first_failure(make_pipeline):
    transport = html_transport(html="", status_code=200)
    llm = FakeLLMProvider()
    result = make_pipeline(transport=transport, llm=llm).extract_from_url(PRODUCT_URL)
    assert result.stage == "fetch"
    assert result.errors == ["No content received from server"]
    assert llm.calls == []


def test_extract_without_saving_writes_nothing(make_pipeline, products):
    result = make_pipeline().extract_without_saving(PRODUCT_URL)
    assert result.success is True
    assert result.extracted_data.name == "Coca-Cola Classic"
    assert products.find_by_url(PRODUCT_URL) is None


def test_health_check(make_pipeline):
    report = make_pipeline().health_check()
    assert report["overall_status"] == "ready"
    assert report["database_service"]["database_connected"] is True

    no_key = make_pipeline(llm=FakeLLMProvider(config=LLMConfig(api_key=None))).health_check()
    assert no_key["overall_status"] == "missing_api_key"
    assert no_key["ai_extractor"]["api_key_configured"] is False


# --- run_extraction_job ---


def test_job_completes(make_pipeline, store):
    job = store.create(PRODUCT_URL)
    run_extraction_job(job.id, store, make_pipeline())

    loaded = store.get(job.id)
    assert loaded.status == JobStatus.COMPLETED.value
    assert loaded.progress == 100
    assert loaded.product_id is not None
    assert loaded.error_message is None
    assert loaded.result_data["variants_count"] == 2
    assert "processing_time" in loaded.result_data


def test_job_fails_with_stage_errors(make_pipeline, store):
    job = store.create(PRODUCT_URL)
    run_extraction_job(job.id, store, make_pipeline(transport=html_transport(html="x", status_code=404)))

    loaded = store.get(job.id)
    assert loaded.status == JobStatus.FAILED.value
    assert loaded.progress == 0
    assert loaded.error_message == "HTTP 404: Not Found"
    assert loaded.product_id is None


def test_job_fails_with_save_error(make_pipeline, store, session_factory, products):
    job = store.create(PRODUCT_URL)
    run_extraction_job(job.id, store, make_pipeline(products=FailingSave(session_factory)))

    loaded = store.get(job.id)
    assert loaded.status == JobStatus.FAILED.value
    assert loaded.error_message == "Database error: disk full"
    assert loaded.product_id is None
    assert products.find_by_url(PRODUCT_URL).status == ProductStatus.FAILED.value


def test_job_fails_with_database_setup_error(make_pipeline, store, session_factory):
    job = store.create(PRODUCT_URL)
    run_extraction_job(job.id, store, make_pipeline(products=LockedDatabase(session_factory)))

    loaded = store.get(job.id)
    assert loaded.status == JobStatus.FAILED.value
    assert loaded.progress == 0
    assert loaded.error_message == "Error updating product status: database is locked"


def test_finished_job_is_skipped(make_pipeline, store):
    job = store.create(PRODUCT_URL)
    store.fail(job.id, "already done")
    llm = FakeLLMProvider()
    transport = html_transport()

    run_extraction_job(job.id, store, make_pipeline(transport=transport, llm=llm))

    assert transport.requests == []
    assert llm.calls == []
    assert store.get(job.id).error_message == "already done"


def test_duplicate_delivery_after_completion_is_noop(make_pipeline, store):
    job = store.create(PRODUCT_URL)
    pipeline = make_pipeline()
    run_extraction_job(job.id, store, pipeline)
    calls_after_first = len(pipeline.ai_extractor.provider.calls)

    run_extraction_job(job.id, store, pipeline)
    assert len(pipeline.ai_extractor.provider.calls) == calls_after_first
    assert store.get(job.id).status == JobStatus.COMPLETED.value


def test_missing_job_raises(make_pipeline, store):
    with pytest.raises(JobNotFoundError):
        run_extraction_job("job_missing", store, make_pipeline())


def test_unexpected_error_marks_failed_and_reraises(make_pipeline, store, products):
    job = store.create(PRODUCT_URL)
    pipeline = make_pipeline(llm=FakeLLMProvider(error=RuntimeError("disk on fire")))

    with pytest.raises(RuntimeError):
        run_extraction_job(job.id, store, pipeline)

    loaded = store.get(job.id)
    assert loaded.status == JobStatus.FAILED.value
    assert loaded.error_message == "Unexpected error: disk on fire"
    assert products.find_by_url(PRODUCT_URL).status == ProductStatus.FAILED.value


def test_re_extraction_keeps_one_product(make_pipeline, store, products):
    first = store.create(PRODUCT_URL)
    run_extraction_job(first.id, store, make_pipeline())

    smaller = {"product": {"name": "Coca-Cola Classic"}, "variants": [coke_data()["variants"][0]]}
    second = store.create(PRODUCT_URL)
    run_extraction_job(second.id, store, make_pipeline(llm=FakeLLMProvider(response=json.dumps(smaller))))

    assert store.get(first.id).product_id == store.get(second.id).product_id
    assert len(products.find_by_url(PRODUCT_URL).variants) == 1
