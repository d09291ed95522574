"""
Root conftest.py — Shared fixtures for ALL tests (unit + integration)

Fixture hierarchy:
  function-scoped : settings, upload_store, job_store, mock providers,
                    orchestrator, app, async_client, sample documents

Environment strategy:
  - No test talks to OpenAI or Confluence: providers are AsyncMocks, or the
    demo implementations when a test needs the real wiring.
  - Uploads are staged under pytest's tmp_path.
  - httpx.AsyncClient + ASGITransport drives the app in the test's event loop,
    so background pipeline tasks run on the same loop and can be drained.

How to run:
  pytest                          # all tests
  pytest -m unit                  # unit tests only
  pytest -m integration           # API tests
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# ─────────────────────────────────────────────────────────────────────────────
# Patch settings BEFORE any app imports so modules read test config
# ─────────────────────────────────────────────────────────────────────────────

os.environ.setdefault("APP_ENV",          "development")
os.environ.setdefault("DEMO_MODE",        "on")
os.environ.setdefault("MAX_FILE_SIZE_MB", "1")

from contractflow.core.config import Settings                      # noqa: E402
from contractflow.providers.publishing import PublishingProvider   # noqa: E402
from contractflow.providers.structured import StructuredExtractionProvider  # noqa: E402
from contractflow.providers.text import TextExtractionProvider     # noqa: E402
from contractflow.schemas.contracts import ContractRecord          # noqa: E402
from contractflow.services.pipeline import PipelineOrchestrator    # noqa: E402
from contractflow.services.registry import InMemoryJobStore        # noqa: E402
from contractflow.storage.uploads import StagedUpload, UploadStore  # noqa: E402

MOCK_LOCATOR = "https://wiki.example.com/wiki/spaces/LEGAL/pages/4242/Master+Services+Agreement"
MOCK_CONTRACT_TEXT = "MASTER SERVICES AGREEMENT between Acme Corp and Globex Inc effective 2025-03-01"


# ─────────────────────────────────────────────────────────────────────────────
# Sample documents
# ─────────────────────────────────────────────────────────────────────────────

def make_pdf(*lines: str) -> bytes:
    """
    Build a small, well-formed single-page PDF with a real text layer.
    xref offsets are computed so pypdf reads it without repair.
    """
    def _escape(s: str) -> str:
        return s.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")

    ops = ["BT", "/F1 12 Tf", "72 720 Td"]
    for i, line in enumerate(lines):
        if i:
            ops.append("0 -16 Td")
        ops.append(f"({_escape(line)}) Tj")
    ops.append("ET")
    stream = "\n".join(ops).encode("latin-1")

    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
        b"/Contents 4 0 R /Resources << /Font << /F1 5 0 R >> >> >>",
        b"<< /Length " + str(len(stream)).encode() + b" >>\nstream\n" + stream + b"\nendstream",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]

    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += f"{number} 0 obj\n".encode() + body + b"\nendobj\n"

    xref_at = len(out)
    out += f"xref\n0 {len(objects) + 1}\n".encode()
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += f"{offset:010d} 00000 n \n".encode()
    out += f"trailer\n<< /Size {len(objects) + 1} /Root 1 0 R >>\nstartxref\n{xref_at}\n%%EOF\n".encode()
    return bytes(out)


@pytest.fixture
def sample_pdf_bytes() -> bytes:
    """Contract PDF with a real text layer."""
    return make_pdf(
        "MASTER SERVICES AGREEMENT",
        "This Agreement is made between Acme Corp and Globex Inc.",
        "Effective Date: 2025-03-01",
    )


@pytest.fixture
def textless_pdf_bytes() -> bytes:
    """Minimal valid PDF: passes the %PDF- signature check but has no text."""
    return (
        b"%PDF-1.4\n"
        b"1 0 obj\n<< /Type /Catalog /Pages 2 0 R >>\nendobj\n"
        b"2 0 obj\n<< /Type /Pages /Kids [3 0 R] /Count 1 >>\nendobj\n"
        b"3 0 obj\n<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] >>\nendobj\n"
        b"xref\n0 4\n"
        b"0000000000 65535 f \n"
        b"0000000009 00000 n \n"
        b"0000000058 00000 n \n"
        b"0000000115 00000 n \n"
        b"trailer\n<< /Size 4 /Root 1 0 R >>\n"
        b"startxref\n186\n%%EOF"
    )


@pytest.fixture
def not_a_pdf_bytes() -> bytes:
    """Windows PE executable header; fails the PDF signature check."""
    return b"MZ\x90\x00" + b"\x00" * 100


@pytest.fixture
def sample_record() -> ContractRecord:
    return ContractRecord.model_validate({
        "contractTitle": "Master Services Agreement",
        "contractNumber": "MSA-2025-014",
        "effectiveDate": "2025-03-01",
        "expirationDate": "2027-02-28",
        "parties": [
            {"name": "Acme Corp", "role": "provider", "address": "1 Acme Way"},
            {"name": "Globex Inc", "role": "recipient"},
        ],
        "contractValue": {"amount": 120000, "currency": "EUR"},
        "keyTerms": ["Net 45 payment terms"],
        "obligations": [{"party": "Acme Corp", "description": "Deliver monthly reports"}],
        "governingLaw": "Delaware",
    })


# ─────────────────────────────────────────────────────────────────────────────
# Settings
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        upload_dir=tmp_path / "uploads",
        max_file_size_mb=1,
        demo_mode="on",
        app_env="development",
    )


# ─────────────────────────────────────────────────────────────────────────────
# Upload store spy: real files, counted releases
# ─────────────────────────────────────────────────────────────────────────────

class SpyUploadStore(UploadStore):
    """UploadStore that records every release call."""

    def __init__(self, upload_dir: Path, fail_release: bool = False) -> None:
        super().__init__(upload_dir)
        self.staged: list[StagedUpload] = []
        self.released: list[Path] = []
        self.fail_release = fail_release

    def stage(self, payload: bytes, source_name: str) -> StagedUpload:
        upload = super().stage(payload, source_name)
        self.staged.append(upload)
        return upload

    async def release(self, upload: StagedUpload) -> None:
        self.released.append(upload.path)
        if self.fail_release:
            raise PermissionError(f"cannot delete {upload.path}")
        await super().release(upload)


@pytest.fixture
def upload_store(settings) -> SpyUploadStore:
    return SpyUploadStore(settings.upload_dir)


@pytest.fixture
def job_store() -> InMemoryJobStore:
    return InMemoryJobStore()


# ─────────────────────────────────────────────────────────────────────────────
# Mock providers
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def mock_text_provider():
    """validate() checks the real PDF signature; extract() is an AsyncMock."""
    provider = MagicMock(spec=TextExtractionProvider)
    provider.validate = MagicMock(side_effect=lambda data: data[:5] == b"%PDF-")
    provider.extract  = AsyncMock(return_value=MOCK_CONTRACT_TEXT)
    return provider


@pytest.fixture
def mock_structured_provider(sample_record):
    provider = MagicMock(spec=StructuredExtractionProvider)
    provider.extract = AsyncMock(return_value=sample_record)
    return provider


@pytest.fixture
def mock_publishing_provider():
    provider = MagicMock(spec=PublishingProvider)
    provider.publish = AsyncMock(return_value=MOCK_LOCATOR)
    return provider


# ─────────────────────────────────────────────────────────────────────────────
# Orchestrator + app
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def orchestrator(
    job_store,
    upload_store,
    mock_text_provider,
    mock_structured_provider,
    mock_publishing_provider,
) -> PipelineOrchestrator:
    return PipelineOrchestrator(
        store=job_store,
        uploads=upload_store,
        text=mock_text_provider,
        structured=mock_structured_provider,
        publishing=mock_publishing_provider,
    )


@pytest.fixture
def app(settings, orchestrator):
    """FastAPI app with the mocked orchestrator injected."""
    from contractflow.main import create_app
    return create_app(settings=settings, orchestrator=orchestrator)


@pytest_asyncio.fixture
async def async_client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP test client.

    httpx >= 0.28 removed the 'app=' shortcut; use ASGITransport explicitly.
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def mock_locator() -> str:
    """URL returned by mock_publishing_provider."""
    return MOCK_LOCATOR


@pytest.fixture
def failing_upload_store(settings) -> SpyUploadStore:
    """Upload store whose release() always raises PermissionError."""
    return SpyUploadStore(settings.upload_dir, fail_release=True)
