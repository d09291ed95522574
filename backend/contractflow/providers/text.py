"""
Text Extraction Provider — PDF bytes → plain text

Contract:
  validate(bytes) -> bool     synchronous signature check, never raises
  extract(bytes)  -> str      raises ExtractionError on malformed input

PdfTextExtractor parses with pypdf in the default executor so the event
loop keeps serving status polls while a large document is parsed.
"""

from __future__ import annotations

import asyncio
import io
import logging
import re
from abc import ABC, abstractmethod

from pypdf import PdfReader

from contractflow.core.errors import ExtractionError

logger = logging.getLogger(__name__)

# Every PDF starts with this header (ISO 32000-1, 7.5.2)
PDF_MAGIC = b"%PDF-"

_WHITESPACE_RE = re.compile(r"\s+")


class TextExtractionProvider(ABC):

    @abstractmethod
    def validate(self, data: bytes) -> bool:
        """True if data carries the expected document signature."""

    @abstractmethod
    async def extract(self, data: bytes) -> str:
        """Return normalized plain text for the document."""


class PdfTextExtractor(TextExtractionProvider):
    """pypdf-backed extractor for native (text-layer) PDFs."""

    def validate(self, data: bytes) -> bool:
        return data[: len(PDF_MAGIC)] == PDF_MAGIC

    async def extract(self, data: bytes) -> str:
        loop = asyncio.get_running_loop()
        try:
            pages = await loop.run_in_executor(None, _read_pages, data)
        except Exception as exc:   # pypdf raises many exception types on corrupt input
            logger.warning("PDF parse failed | error=%s", exc)
            raise ExtractionError(f"Failed to extract text from PDF: {exc}") from exc

        text = normalize_text("\n".join(pages))
        if not text:
            raise ExtractionError("Failed to extract text from PDF: document contains no text layer")

        logger.info("Extracted %d pages (%d chars) from PDF", len(pages), len(text))
        return text


def _read_pages(data: bytes) -> list[str]:
    reader = PdfReader(io.BytesIO(data))
    return [page.extract_text() or "" for page in reader.pages]


def normalize_text(raw: str) -> str:
    """Collapse runs of whitespace into single spaces and trim."""
    return _WHITESPACE_RE.sub(" ", raw).strip()
