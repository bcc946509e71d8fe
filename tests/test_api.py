"""Tests for the HTTP surface: job submission, polling, export, manual update."""

import pytest
from fastapi.testclient import TestClient

from backend import main
from backend.routes import extraction
from pva.jobs import JobStore
from tests.fakes import PRODUCT_URL, coke_data


@pytest.fixture
def queued(monkeypatch):
    """Capture background jobs instead of running the real pipeline."""
    calls = []
    monkeypatch.setattr(extraction, "process", lambda job_id, session_factory: calls.append(job_id))
    return calls


@pytest.fixture
def client(session_factory, queued):
    main.app.dependency_overrides[extraction.get_db] = lambda: session_factory
    main._rate_store.clear()
    with TestClient(main.app) as c:
        yield c
    main.app.dependency_overrides.clear()


@pytest.fixture
def completed_job_id(session_factory, products):
    store = JobStore(session_factory)
    saved = products.save(coke_data(), PRODUCT_URL)
    job = store.create(PRODUCT_URL)
    store.start(job.id)
    store.complete(job.id, saved.product.id, {"processing_time": 1.0})
    return job.id


# --- POST /api/extract ---


def test_extract_queues_job(client, queued, session_factory):
    resp = client.post("/api/extract", json={"url": PRODUCT_URL})
    assert resp.status_code == 202
    body = resp.json()
    assert body["status"] == "queued"
    assert body["existing_product"] is False
    assert queued == [body["job_id"]]
    assert JobStore(session_factory).get(body["job_id"]).url == PRODUCT_URL


def test_extract_flags_existing_product(client, products):
    products.save(coke_data(), PRODUCT_URL)
    body = client.post("/api/extract", json={"url": PRODUCT_URL}).json()
    assert body["existing_product"] is True
    assert "Previous data will be replaced" in body["message"]


@pytest.mark.parametrize(
    "url,detail",
    [
        ("", "URL cannot be blank"),
        ("ftp://example.com/x", "URL must use HTTP or HTTPS protocol"),
        ("not-a-url", "Invalid URL format"),
    ],
)
def test_extract_rejects_bad_url(client, queued, url, detail):
    resp = client.post("/api/extract", json={"url": url})
    assert resp.status_code == 400
    assert resp.json()["detail"] == detail
    assert queued == []


# --- POST /api/check-url ---


def test_check_url_unknown(client):
    assert client.post("/api/check-url", json={"url": "https://example.com/new"}).json() == {
        "exists": False,
        "product": None,
        "error": None,
    }


def test_check_url_invalid(client):
    body = client.post("/api/check-url", json={"url": "nope"}).json()
    assert body["exists"] is False
    assert body["error"] == "Invalid URL"


def test_check_url_existing(client, products):
    products.save(coke_data(), PRODUCT_URL)
    body = client.post("/api/check-url", json={"url": PRODUCT_URL}).json()
    assert body["exists"] is True
    assert body["product"]["variants_count"] == 2
    assert body["product"]["last_extraction"] == "Completed"


# --- GET /api/jobs/{id}/status ---


def test_status_of_queued_job(client, session_factory):
    job = JobStore(session_factory).create(PRODUCT_URL)
    body = client.get(f"/api/jobs/{job.id}/status").json()
    assert body["status"] == "queued"
    assert body["progress_display"] == "0%"
    assert body["finished"] is False
    assert body["product"] is None


def test_status_of_completed_job(client, completed_job_id):
    body = client.get(f"/api/jobs/{completed_job_id}/status").json()
    assert body["status"] == "completed"
    assert body["finished"] is True
    assert body["product"]["best_value_variant"]["name"] == "20 oz Bottle"
    assert body["processing_time"] == 1.0


def test_status_of_missing_job(client):
    resp = client.get("/api/jobs/job_missing/status")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Job not found"


# --- GET /api/jobs/{id}/export ---


def test_export_csv(client, completed_job_id):
    resp = client.get(f"/api/jobs/{completed_job_id}/export", params={"format": "csv"})
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    assert ".csv" in resp.headers["content-disposition"]
    assert "Variant Name" in resp.text
    assert "$1.99" in resp.text


def test_export_json(client, completed_job_id):
    resp = client.get(f"/api/jobs/{completed_job_id}/export", params={"format": "json"})
    assert resp.status_code == 200
    assert resp.json()["product"]["name"] == "Coca-Cola Classic"


def test_export_rejects_unknown_format(client, completed_job_id):
    resp = client.get(f"/api/jobs/{completed_job_id}/export", params={"format": "xml"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Invalid export format"


def test_export_of_unfinished_job(client, session_factory):
    job = JobStore(session_factory).create(PRODUCT_URL)
    resp = client.get(f"/api/jobs/{job.id}/export")
    assert resp.status_code == 409
    assert resp.json()["detail"] == "Results not available for export"


# --- POST /api/products/{id}/update ---


def test_manual_update_queues_job_for_product_url(client, queued, products):
    product = products.save(coke_data(), PRODUCT_URL).product
    resp = client.post(f"/api/products/{product.id}/update")
    assert resp.status_code == 202
    body = resp.json()
    assert body["url"] == PRODUCT_URL
    assert body["existing_product"] is True
    assert queued == [body["job_id"]]


def test_manual_update_missing_product(client):
    resp = client.post("/api/products/999/update")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Product not found"


# --- health ---


def test_health_reports_components(client):
    body = client.get("/api/health").json()
    assert body["status"] in ("ok", "degraded")
    assert body["database_service"]["database_connected"] is True
    assert client.get("/health").status_code == 200


def test_posts_are_throttled_per_client(client):
    for _ in range(main.THROTTLE_POSTS):
        assert client.post("/api/check-url", json={"url": "nope"}).status_code == 200
    resp = client.post("/api/check-url", json={"url": "nope"})
    assert resp.status_code == 429
    assert client.get("/api/").status_code == 200
