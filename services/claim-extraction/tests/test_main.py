"""Tests for the HTTP surface (no analyzer configured unless patched in)."""

import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, str(Path(__file__).parent.parent))

import main
from analyzer_client import AnalyzerError, AnalyzerUnavailable


@pytest.fixture
def client():
    # No context manager: lifespan (and its analyzer) is not started
    return TestClient(main.app)


@pytest.fixture
def completion_analyzer(monkeypatch):
    analyzer = MagicMock()
    analyzer.model = "test-model"
    analyzer.complete = AsyncMock(return_value="  Claim meets criteria.  ")
    monkeypatch.setattr(main, "_analyzer", analyzer)
    return analyzer


class TestExtractEndpoint:
    def test_extracts_claim_text(self, client: TestClient, claim_text: str):
        resp = client.post("/api/v1/extract", json={"text": claim_text, "documentName": "claim-001"})

        assert resp.status_code == 200
        body = resp.json()
        assert body["extractedData"]["patientName"] == "John Smith"
        assert body["extractedData"]["identifier"] == "MD123456789"
        assert body["processingMethod"] == "pattern_extraction"
        assert body["validation"]["status"] == "VALID"
        assert body["fieldSources"]["patientName"] == "pattern"

    def test_blank_text_is_400(self, client: TestClient):
        resp = client.post("/api/v1/extract", json={"text": "   "})
        assert resp.status_code == 400
        assert "detail" in resp.json()


class TestExtractFromFile:
    @pytest.fixture
    def document_root(self, tmp_path, monkeypatch):
        root = tmp_path / "documents"
        root.mkdir()
        monkeypatch.setattr(main.settings, "DOCUMENT_ROOT", str(root))
        return root

    def test_file_paths_rejected_without_document_root(self, client: TestClient, tmp_path, monkeypatch):
        monkeypatch.setattr(main.settings, "DOCUMENT_ROOT", "")
        secret = tmp_path / "secret.txt"
        secret.write_text("Patient: Secret Person, Medicaid ID: ZZ999999999")

        resp = client.post("/api/v1/extract", json={"filePath": str(secret)})

        assert resp.status_code == 400
        assert "Secret" not in resp.text

    def test_file_under_root_is_read(self, client: TestClient, document_root, claim_text: str):
        (document_root / "claim.txt").write_text(claim_text)

        resp = client.post("/api/v1/extract", json={"filePath": "claim.txt"})

        assert resp.status_code == 200
        assert resp.json()["extractedData"]["patientName"] == "John Smith"

    def test_absolute_path_outside_root_is_400(self, client: TestClient, document_root, tmp_path):
        secret = tmp_path / "secret.txt"
        secret.write_text("Patient: Secret Person, Medicaid ID: ZZ999999999")

        for path in (str(secret), "../secret.txt", "/etc/passwd"):
            resp = client.post("/api/v1/extract", json={"filePath": path})
            assert resp.status_code == 400, path
            assert "outside" in resp.json()["detail"]

    def test_missing_file_under_root_is_400(self, client: TestClient, document_root):
        resp = client.post("/api/v1/extract", json={"filePath": "missing.pdf"})
        assert resp.status_code == 400


class TestCompleteEndpoint:
    def test_no_analyzer_is_503(self, client: TestClient):
        resp = client.post("/api/v1/complete", json={"prompt": "hello"})
        assert resp.status_code == 503

    def test_empty_prompt_rejected(self, client: TestClient):
        resp = client.post("/api/v1/complete", json={"prompt": ""})
        assert resp.status_code == 422

    def test_completion(self, client: TestClient, completion_analyzer):
        resp = client.post("/api/v1/complete", json={"prompt": "Is this claim eligible?", "max_tokens": 64})

        assert resp.status_code == 200
        assert resp.json() == {"text": "Claim meets criteria.", "model": "test-model"}
        completion_analyzer.complete.assert_awaited_once_with("Is this claim eligible?", None, 64)

    def test_analyzer_unavailable_is_503(self, client: TestClient, completion_analyzer):
        completion_analyzer.complete.side_effect = AnalyzerUnavailable("Cannot connect")
        resp = client.post("/api/v1/complete", json={"prompt": "hi"})
        assert resp.status_code == 503
        assert resp.json()["detail"] == "Cannot connect"

    def test_analyzer_error_is_502(self, client: TestClient, completion_analyzer):
        completion_analyzer.complete.side_effect = AnalyzerError("bad options")
        resp = client.post("/api/v1/complete", json={"prompt": "hi"})
        assert resp.status_code == 502


class TestHealth:
    def test_without_analyzer(self, client: TestClient):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "healthy", "analyzer_configured": False}

    def test_with_analyzer(self, client: TestClient, monkeypatch):
        analyzer = MagicMock()
        analyzer.probe = AsyncMock(return_value=False)
        monkeypatch.setattr(main, "_analyzer", analyzer)

        body = client.get("/health").json()
        assert body["analyzer_configured"] is True
        assert body["analyzer_reachable"] is False
