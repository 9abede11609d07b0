"""
Tests for the FastAPI backend in server.py.

The app is built around a pipeline with fakes; no browser or model is used.
"""

import pytest
from fastapi.testclient import TestClient

from conftest import CONTACT_URL, StaticExtractor
from aiautofill.config import Settings
from server import create_app
from services.page_loader import ExtractionError


# ============ Fixtures ============

@pytest.fixture
def client(make_pipeline):
    """Test client for an app wired to the shared fakes."""
    return TestClient(create_app(pipeline=make_pipeline(), settings=Settings()))


@pytest.fixture
def failing_client(make_pipeline):
    """Test client whose extractor never reaches a usable load state."""
    extractor = StaticExtractor({}, error=ExtractionError("Page never reached a usable load state"))
    return TestClient(create_app(pipeline=make_pipeline(pipeline_extractor=extractor), settings=Settings()))


# ============ Health Tests ============

class TestHealth:
    """Tests for GET /."""

    def test_health(self, client):
        response = client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["apiKeyStatus"] == "Missing"
        assert "POST /api/autofill/direct" in data["endpoints"]


# ============ Scan Tests ============

class TestScanEndpoints:
    """Tests for /scan-form and /scan-multi-page-form."""

    def test_url_required(self, client):
        response = client.post("/scan-form", json={})

        assert response.status_code == 400
        assert response.json()["error"] == "URL is required"

    def test_scan_form(self, client):
        response = client.post("/scan-form", json={"url": CONTACT_URL})

        assert response.status_code == 200
        data = response.json()
        assert data["success"]
        assert data["scan"]["fieldCount"] == 5
        assert data["aiMapping"]["skipped"]

    def test_extraction_failure(self, failing_client):
        """Should return a structured 500 without a stack trace."""
        response = failing_client.post("/scan-form", json={"url": CONTACT_URL})

        assert response.status_code == 500
        assert response.json() == {
            "success": False,
            "error": "Page never reached a usable load state",
            "type": "ExtractionError",
        }

    def test_multi_page_url_required(self, client):
        assert client.post("/scan-multi-page-form", json={"maxPages": 2}).status_code == 400

    def test_multi_page(self, client):
        response = client.post("/scan-multi-page-form", json={"url": "https://example.org/wizard", "maxPages": 5})

        assert response.status_code == 200
        assert response.json()["scan"]["totalPages"] == 2


# ============ Dataset Tests ============

class TestDatasetEndpoints:
    """Tests for dataset configuration and introspection."""

    def test_configure_and_inspect(self, client, local_dataset):
        response = client.post("/api/dataset/configure", json=local_dataset)

        assert response.status_code == 200
        assert response.json()["savedAs"] == "dataset-config.json"

        status = client.get("/api/dataset/test").json()
        assert status["configured"]
        assert status["summary"] == "1 files"

        processed = client.get("/api/dataset/processed-data").json()
        assert processed["data"]["totalFiles"] == 1

    def test_empty_processed_data(self, client):
        assert client.get("/api/dataset/processed-data").json() == {
            "success": True,
            "data": [],
            "message": "No processed data available",
        }


# ============ Mapping and Autofill Tests ============

class TestMappingEndpoints:
    """Tests for mapping, autofill and audit endpoints."""

    def test_latest_mapping_empty(self, client):
        assert client.get("/api/ai-mapping/latest").json()["data"] is None

    def test_run_mapping_without_dataset(self, client):
        response = client.post("/run-ai-mapping")

        assert response.status_code == 400
        assert "No dataset configuration found" in response.json()["error"]

    def test_run_mapping_without_schema(self, client, local_dataset):
        client.post("/api/dataset/configure", json=local_dataset)

        response = client.post("/run-ai-mapping")

        assert response.status_code == 400
        assert response.json()["error"] == "No form schema found. Please scan a form first."

    def test_direct_autofill_without_dataset(self, client):
        response = client.post("/api/autofill/direct", json={"url": CONTACT_URL})

        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_direct_autofill(self, client, local_dataset):
        response = client.post("/api/autofill/direct", json={"url": CONTACT_URL, "dataset": local_dataset})

        assert response.status_code == 200
        data = response.json()
        assert data["success"]
        assert len(data["commands"]) == 5
        assert data["metadata"]["chunked"] is False

        latest = client.get("/api/ai-mapping/latest").json()
        assert latest["filename"].startswith("mapping-")
