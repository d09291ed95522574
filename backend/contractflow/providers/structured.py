"""
Structured Extraction Provider — contract text → ContractRecord

Two implementations of the same capability, chosen once at startup by
providers.factory:

  LLMContractExtractor   calls a chat model through LangChain and validates
                         the JSON it returns against ContractRecord
  DemoContractExtractor  synthesizes a schema-valid record locally; every
                         free-text field that matters says it is demo data

Both raise StructuredExtractionError and nothing else, so the orchestrator
does not need to know which one it is talking to.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from abc import ABC, abstractmethod

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage
from pydantic import ValidationError as SchemaValidationError

from contractflow.core.errors import StructuredExtractionError
from contractflow.schemas.contracts import (
    ContractRecord,
    ContractValue,
    Obligation,
    Party,
    PartyRole,
)

logger = logging.getLogger(__name__)

DEMO_MARKER = "This is DEMO DATA - no real AI extraction was performed"

# First {...} block in the response, across newlines
_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")

_SYSTEM_PROMPT = "You are an expert contract analyst. You answer with a single JSON object and nothing else."

_EXTRACTION_PROMPT = """Extract the key information from the contract below.

Contract Text:
{contract_text}

Return ONLY a valid JSON object with these keys:
{{
  "contractTitle": "title or name of the contract",
  "contractNumber": "reference number, or null",
  "effectiveDate": "YYYY-MM-DD",
  "expirationDate": "YYYY-MM-DD, or null",
  "parties": [{{"name": "...", "role": "provider|recipient|other", "address": "... or null"}}],
  "contractValue": {{"amount": 0, "currency": "USD"}},
  "keyTerms": ["..."],
  "obligations": [{{"party": "...", "description": "..."}}],
  "renewalTerms": "... or null",
  "terminationClauses": ["..."],
  "governingLaw": "... or null",
  "specialProvisions": ["..."]
}}

Rules:
- No markdown code fences, no commentary.
- Dates must be YYYY-MM-DD.
- Use null or an empty list when the contract does not say."""


class StructuredExtractionProvider(ABC):

    #: True when the provider synthesizes output instead of calling a service
    is_demo: bool = False

    @abstractmethod
    async def extract(self, text: str) -> ContractRecord:
        """Return a validated ContractRecord for the given contract text."""


# ---------------------------------------------------------------------------
# LLM-backed implementation
# ---------------------------------------------------------------------------

class LLMContractExtractor(StructuredExtractionProvider):
    """
    Prompt a LangChain chat model and parse its JSON answer.

    The model is injected so tests can pass a fake BaseChatModel;
    build_chat_model() creates the production ChatOpenAI instance.
    """

    def __init__(self, llm: BaseChatModel, timeout_seconds: float = 120.0) -> None:
        self._llm = llm
        self._timeout = timeout_seconds

    async def extract(self, text: str) -> ContractRecord:
        logger.info("Starting AI extraction of contract data | chars=%d", len(text))
        messages = self.build_messages(text)

        try:
            response = await asyncio.wait_for(self._llm.ainvoke(messages), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise StructuredExtractionError(
                f"Failed to extract contract data: model did not answer within {self._timeout:.0f}s"
            ) from exc
        except Exception as exc:
            logger.warning("LLM call failed | error=%s: %s", type(exc).__name__, exc)
            raise StructuredExtractionError(f"Failed to extract contract data: {exc}") from exc

        content = response.content if isinstance(response.content, str) else str(response.content)
        record = parse_contract_json(content)
        logger.info("Extracted and validated contract data | title=%s", record.contract_title)
        return record

    @staticmethod
    def build_messages(text: str) -> list[BaseMessage]:
        return [
            SystemMessage(content=_SYSTEM_PROMPT),
            HumanMessage(content=_EXTRACTION_PROMPT.format(contract_text=text)),
        ]


def parse_contract_json(content: str) -> ContractRecord:
    """Locate the JSON object in a model answer and validate it."""
    match = _JSON_OBJECT_RE.search(content)
    if not match:
        raise StructuredExtractionError("Failed to extract contract data: no JSON found in AI response")

    try:
        payload = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise StructuredExtractionError(
            f"Failed to extract contract data: AI response is not valid JSON ({exc.msg})"
        ) from exc

    try:
        return ContractRecord.model_validate(payload)
    except SchemaValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
        raise StructuredExtractionError(
            f"Failed to extract contract data: response does not match schema ({fields})"
        ) from exc


def build_chat_model(
    api_key: str,
    model: str,
    temperature: float,
    max_tokens: int,
) -> BaseChatModel:
    from langchain_openai import ChatOpenAI
    return ChatOpenAI(
        model=model,
        api_key=api_key,
        temperature=temperature,
        max_tokens=max_tokens,
    )


# ---------------------------------------------------------------------------
# Demo implementation
# ---------------------------------------------------------------------------

class DemoContractExtractor(StructuredExtractionProvider):
    """Deterministic stand-in used when no LLM credentials are configured."""

    is_demo = True

    async def extract(self, text: str) -> ContractRecord:
        logger.info("Generating demo contract data (no LLM credentials configured)")
        return synthesize_demo_record(text)


def synthesize_demo_record(text: str) -> ContractRecord:
    first_line = text.split("\n", 1)[0][:100].strip()
    preview = text[:150]

    return ContractRecord(
        contract_title=first_line or "Demo Service Agreement",
        contract_number="DEMO-2025-001",
        effective_date="2025-01-01",
        expiration_date="2026-01-01",
        parties=[
            Party(
                name="Demo Company LLC",
                role=PartyRole.PROVIDER,
                address="123 Demo Street, Demo City, DC 12345",
            ),
            Party(
                name="Sample Client Corp",
                role=PartyRole.RECIPIENT,
                address="456 Sample Avenue, Sample Town, ST 67890",
            ),
        ],
        contract_value=ContractValue(amount=50000, currency="USD"),
        key_terms=[
            "Services to be provided as outlined in Exhibit A",
            "Payment terms: Net 30 days",
            "Confidentiality obligations apply to both parties",
            f"Contract text preview: {preview}...",
        ],
        obligations=[
            Obligation(party="Demo Company LLC", description="Provide services as specified in the contract"),
            Obligation(party="Sample Client Corp", description="Make timely payments and provide necessary access"),
        ],
        renewal_terms="Auto-renewal for 1 year unless terminated with 30 days notice",
        termination_clauses=[
            "Either party may terminate with 30 days written notice",
            "Immediate termination allowed for material breach",
        ],
        governing_law="State of Demo",
        special_provisions=[
            DEMO_MARKER,
            "Configure OPENAI_API_KEY in .env for real extraction",
        ],
    )
