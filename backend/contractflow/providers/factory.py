"""
Provider Factory

Selects the concrete provider for each capability from settings.
The rest of the app only imports build_providers(), never the concrete
classes directly.

Mode selection (DEMO_MODE):
  on    → demo implementations for every remote capability
  off   → real implementations; missing credentials fail startup
  auto  → real implementation when its credentials look usable,
          demo otherwise (empty values or template placeholders)

Every decision is logged once, with the reason, when the app starts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from contractflow.core.config import Settings
from contractflow.providers.publishing import (
    ConfluencePublisher,
    DemoPublisher,
    PublishingProvider,
)
from contractflow.providers.structured import (
    DemoContractExtractor,
    LLMContractExtractor,
    StructuredExtractionProvider,
    build_chat_model,
)
from contractflow.providers.text import PdfTextExtractor, TextExtractionProvider

logger = logging.getLogger(__name__)

# Fragments found in the sample .env values shipped with the project
_PLACEHOLDER_MARKERS = ("your_", "your-domain", "your-email", "changeme")


@dataclass(frozen=True)
class Providers:
    text:       TextExtractionProvider
    structured: StructuredExtractionProvider
    publishing: PublishingProvider


def looks_like_placeholder(value: str) -> bool:
    lowered = value.strip().lower()
    return not lowered or any(marker in lowered for marker in _PLACEHOLDER_MARKERS)


def _missing(credentials: dict[str, str]) -> list[str]:
    return [name for name, value in credentials.items() if looks_like_placeholder(value)]


def _use_demo(capability: str, credentials: dict[str, str], mode: str) -> bool:
    missing = _missing(credentials)

    if mode == "on":
        logger.warning("%s: DEMO MODE (DEMO_MODE=on)", capability)
        return True

    if mode == "off":
        if missing:
            raise RuntimeError(
                f"{capability}: DEMO_MODE=off but credentials are missing or placeholders: "
                + ", ".join(missing)
            )
        logger.info("%s: live mode (DEMO_MODE=off)", capability)
        return False

    if missing:
        logger.warning(
            "%s: DEMO MODE (missing or placeholder settings: %s)",
            capability, ", ".join(missing),
        )
        return True

    logger.info("%s: live mode (credentials configured)", capability)
    return False


def build_structured_provider(settings: Settings) -> StructuredExtractionProvider:
    credentials = {"OPENAI_API_KEY": settings.openai_api_key}
    if _use_demo("Structured extraction", credentials, settings.demo_mode):
        return DemoContractExtractor()

    llm = build_chat_model(
        api_key=settings.openai_api_key,
        model=settings.llm_model,
        temperature=settings.llm_temperature,
        max_tokens=settings.llm_max_tokens,
    )
    return LLMContractExtractor(llm=llm, timeout_seconds=settings.llm_timeout_seconds)


def build_publishing_provider(settings: Settings) -> PublishingProvider:
    credentials = {
        "CONFLUENCE_BASE_URL":   settings.confluence_base_url,
        "CONFLUENCE_USER_EMAIL": settings.confluence_user_email,
        "CONFLUENCE_API_TOKEN":  settings.confluence_api_token,
        "CONFLUENCE_SPACE_KEY":  settings.confluence_space_key,
    }
    if _use_demo("Publishing", credentials, settings.demo_mode):
        return DemoPublisher()

    return ConfluencePublisher(
        base_url=settings.confluence_base_url,
        user_email=settings.confluence_user_email,
        api_token=settings.confluence_api_token,
        space_key=settings.confluence_space_key,
        parent_page_id=settings.confluence_parent_page_id or None,
        timeout_seconds=settings.confluence_timeout_seconds,
    )


def build_providers(settings: Settings) -> Providers:
    return Providers(
        text=PdfTextExtractor(),
        structured=build_structured_provider(settings),
        publishing=build_publishing_provider(settings),
    )
