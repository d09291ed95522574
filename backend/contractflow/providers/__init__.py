from contractflow.providers.factory import Providers, build_providers
from contractflow.providers.publishing import ConfluencePublisher, DemoPublisher, PublishingProvider
from contractflow.providers.structured import (
    DemoContractExtractor,
    LLMContractExtractor,
    StructuredExtractionProvider,
)
from contractflow.providers.text import PdfTextExtractor, TextExtractionProvider

__all__ = [
    "Providers",
    "build_providers",
    "TextExtractionProvider",
    "PdfTextExtractor",
    "StructuredExtractionProvider",
    "LLMContractExtractor",
    "DemoContractExtractor",
    "PublishingProvider",
    "ConfluencePublisher",
    "DemoPublisher",
]
