"""
Integration Tests — Contract Job API
═════════════════════════════════════
Full request → background pipeline → status poll cycle over ASGITransport.
Providers are mocked (conftest.py) except in TestDemoModeEndToEnd, which
wires the real factory with DEMO_MODE=on.

Background tasks run on the test's event loop; tests await
orchestrator.drain() before asserting on terminal state.
"""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from contractflow.core.errors import PublishingError
from contractflow.providers.publishing import DEMO_BASE_URL
from contractflow.providers.structured import DEMO_MARKER


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────

def _pdf_form(content: bytes, filename: str = "msa.pdf", content_type: str = "application/pdf") -> dict:
    return {"file": (filename, content, content_type)}


async def _submit(client: AsyncClient, content: bytes, **kwargs) -> str:
    resp = await client.post("/jobs", files=_pdf_form(content), **kwargs)
    assert resp.status_code == 202, resp.text
    return resp.json()["id"]


# ─────────────────────────────────────────────────────────────────────────────
# POST /jobs
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.integration
class TestSubmitEndpoint:

    async def test_pdf_returns_202_with_id_and_status_url(self, async_client, sample_pdf_bytes):
        resp = await async_client.post("/jobs", files=_pdf_form(sample_pdf_bytes))

        assert resp.status_code == 202, resp.text
        body = resp.json()
        assert set(body) == {"id", "statusUrl"}
        assert body["statusUrl"] == f"/jobs/{body['id']}/status"

    async def test_response_headers_present(self, async_client, sample_pdf_bytes):
        resp = await async_client.post(
            "/jobs",
            files=_pdf_form(sample_pdf_bytes),
            headers={"X-Request-ID": "req-123"},
        )

        job_id = resp.json()["id"]
        assert resp.headers["X-Job-ID"] == job_id
        assert resp.headers["Location"] == f"/jobs/{job_id}/status"
        assert resp.headers["X-Request-ID"] == "req-123"

    async def test_pdf_extension_with_generic_content_type_accepted(self, async_client, sample_pdf_bytes):
        resp = await async_client.post(
            "/jobs",
            files=_pdf_form(sample_pdf_bytes, "scan.PDF", "application/octet-stream"),
        )
        assert resp.status_code == 202, resp.text

    async def test_publish_target_passed_to_publisher(
        self, async_client, orchestrator, sample_pdf_bytes, sample_record, mock_publishing_provider,
    ):
        target = "https://wiki.example.com/wiki/spaces/LEGAL/pages/77"
        await _submit(async_client, sample_pdf_bytes, data={"publishTarget": target})
        await orchestrator.drain()

        mock_publishing_provider.publish.assert_awaited_once_with(sample_record, target)

    async def test_blank_publish_target_treated_as_absent(
        self, async_client, orchestrator, sample_pdf_bytes, sample_record, mock_publishing_provider,
    ):
        await _submit(async_client, sample_pdf_bytes, data={"publishTarget": "   "})
        await orchestrator.drain()

        mock_publishing_provider.publish.assert_awaited_once_with(sample_record, None)


@pytest.mark.integration
class TestSubmitValidation:

    async def test_missing_file_returns_400(self, async_client, orchestrator):
        resp = await async_client.post("/jobs", data={"publishTarget": "https://wiki.example.com"})

        assert resp.status_code == 400, resp.text
        body = resp.json()
        assert body["error_code"] == "MISSING_FILE"
        assert body["details"][0]["field"] == "file"
        assert orchestrator.list_all() == []

    async def test_empty_file_returns_400(self, async_client, orchestrator):
        resp = await async_client.post("/jobs", files=_pdf_form(b""))

        assert resp.status_code == 400
        assert resp.json()["error_code"] == "MISSING_FILE"
        assert orchestrator.list_all() == []

    async def test_non_pdf_returns_400(self, async_client, orchestrator):
        resp = await async_client.post(
            "/jobs",
            files=_pdf_form(
                b"PK\x03\x04" + b"\x00" * 64,
                "notes.docx",
                "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
            ),
        )

        assert resp.status_code == 400
        body = resp.json()
        assert body["error_code"] == "UNSUPPORTED_FILE_TYPE"
        assert "notes.docx" in body["details"][0]["message"]
        assert orchestrator.list_all() == []

    async def test_oversized_via_content_length_returns_413(self, async_client, settings, orchestrator):
        payload = b"%PDF-1.4\n" + b"0" * (settings.max_file_size_bytes * 2)
        resp = await async_client.post("/jobs", files=_pdf_form(payload))

        assert resp.status_code == 413
        assert resp.json()["error_code"] == "FILE_TOO_LARGE"
        assert orchestrator.list_all() == []

    async def test_oversized_by_one_byte_returns_413(self, async_client, settings, orchestrator):
        payload = b"%PDF-1.4\n" + b"0" * (settings.max_file_size_bytes - 8)
        resp = await async_client.post("/jobs", files=_pdf_form(payload))

        assert resp.status_code == 413
        assert "limit" in resp.json()["message"]
        assert orchestrator.list_all() == []

    async def test_rejected_upload_is_not_staged(self, async_client, upload_store):
        await async_client.post("/jobs", files=_pdf_form(b"", "empty.pdf"))
        assert upload_store.staged == []


# ─────────────────────────────────────────────────────────────────────────────
# GET /jobs/{id}/status
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.integration
class TestStatusEndpoint:

    async def test_status_immediately_after_submit(self, async_client, sample_pdf_bytes):
        job_id = await _submit(async_client, sample_pdf_bytes)

        resp = await async_client.get(f"/jobs/{job_id}/status")
        assert resp.status_code == 200
        body = resp.json()
        assert body["id"] == job_id
        assert body["sourceName"] == "msa.pdf"
        assert body["status"] in {"pending", "running", "completed"}

    async def test_completed_job_shape(
        self, async_client, orchestrator, sample_pdf_bytes, mock_locator,
    ):
        job_id = await _submit(async_client, sample_pdf_bytes)
        await orchestrator.drain()

        body = (await async_client.get(f"/jobs/{job_id}/status")).json()
        assert body["status"] == "completed"
        assert body["outputLocation"] == mock_locator
        assert body["result"]["contractTitle"] == "Master Services Agreement"
        assert body["result"]["parties"][0] == {
            "name": "Acme Corp", "role": "provider", "address": "1 Acme Way",
        }
        assert "completedAt" in body
        assert "failureReason" not in body

    async def test_failed_job_shape(
        self, async_client, orchestrator, sample_pdf_bytes, mock_publishing_provider,
    ):
        mock_publishing_provider.publish.side_effect = PublishingError("quota exceeded")

        job_id = await _submit(async_client, sample_pdf_bytes)
        await orchestrator.drain()

        resp = await async_client.get(f"/jobs/{job_id}/status")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "failed"
        assert body["failureReason"] == "quota exceeded"
        assert "result" not in body
        assert "outputLocation" not in body

    async def test_pdf_named_file_with_wrong_signature_fails_job(
        self, async_client, orchestrator, not_a_pdf_bytes, mock_text_provider,
    ):
        resp = await async_client.post("/jobs", files=_pdf_form(not_a_pdf_bytes, "invoice.pdf"))
        assert resp.status_code == 202
        await orchestrator.drain()

        body = (await async_client.get(f"/jobs/{resp.json()['id']}/status")).json()
        assert body["status"] == "failed"
        assert body["failureReason"] == "invalid document"
        mock_text_provider.extract.assert_not_awaited()

    async def test_unknown_job_returns_404(self, async_client):
        resp = await async_client.get("/jobs/00000000-0000-4000-8000-000000000000/status")

        assert resp.status_code == 404
        body = resp.json()
        assert body["error_code"] == "JOB_NOT_FOUND"
        assert "00000000-0000-4000-8000-000000000000" in body["message"]


# ─────────────────────────────────────────────────────────────────────────────
# GET /jobs, /health, unknown routes
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.integration
class TestListAndOperations:

    async def test_list_empty(self, async_client):
        resp = await async_client.get("/jobs")
        assert resp.status_code == 200
        assert resp.json() == {"total": 0, "jobs": []}

    async def test_list_in_submission_order(
        self, async_client, orchestrator, sample_pdf_bytes, not_a_pdf_bytes, mock_locator,
    ):
        first = await _submit(async_client, sample_pdf_bytes)
        second = await _submit(async_client, not_a_pdf_bytes)
        await orchestrator.drain()

        body = (await async_client.get("/jobs")).json()
        assert body["total"] == 2
        assert [j["id"] for j in body["jobs"]] == [first, second]

        done, failed = body["jobs"]
        assert done["status"] == "completed"
        assert done["outputLocation"] == mock_locator
        assert failed["status"] == "failed"
        assert "outputLocation" not in failed
        assert all("result" not in j for j in body["jobs"])

    async def test_health(self, async_client):
        resp = await async_client.get("/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "healthy"
        assert "timestamp" in body

    async def test_unknown_route_returns_404_envelope(self, async_client):
        resp = await async_client.get("/nope")
        assert resp.status_code == 404
        assert resp.json()["error_code"] == "NOT_FOUND"


# ─────────────────────────────────────────────────────────────────────────────
# Demo mode, real factory wiring
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.integration
class TestDemoModeEndToEnd:

    async def test_demo_pipeline_completes(self, settings, sample_pdf_bytes):
        from contractflow.main import create_app

        app = create_app(settings=settings)
        orchestrator = app.state.orchestrator

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            job_id = await _submit(client, sample_pdf_bytes)
            await orchestrator.drain()
            body = (await client.get(f"/jobs/{job_id}/status")).json()

        assert body["status"] == "completed", body
        assert body["outputLocation"].startswith(DEMO_BASE_URL)
        assert body["result"]["contractTitle"].startswith("MASTER SERVICES AGREEMENT")
        assert DEMO_MARKER in body["result"]["specialProvisions"]
        assert list(settings.upload_dir.iterdir()) == []
