"""
Publishing Provider — ContractRecord → published page locator

  ConfluencePublisher  creates a page through the Confluence REST API
  DemoPublisher        returns a synthetic locator without any network call

Both raise PublishingError on failure. publish_target, when given, is the
caller's preferred location and is passed through unchanged.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from urllib.parse import quote

import httpx

from contractflow.core.errors import PublishingError
from contractflow.providers.rendering import page_title, render_page
from contractflow.schemas.contracts import ContractRecord

logger = logging.getLogger(__name__)

DEMO_BASE_URL = "https://demo.confluence.com/wiki/spaces/DEMO/pages/123456"


class PublishingProvider(ABC):

    is_demo: bool = False

    @abstractmethod
    async def publish(self, record: ContractRecord, target: str | None = None) -> str:
        """Publish the record and return the locator (URL) of the result."""


# ---------------------------------------------------------------------------
# Confluence
# ---------------------------------------------------------------------------

class ConfluencePublisher(PublishingProvider):
    """
    Creates one Confluence page per contract.

    Usage::

        publisher = ConfluencePublisher(base_url, email, token, space_key="LEGAL")
        url = await publisher.publish(record)

    A transport can be injected for tests (httpx.MockTransport).
    """

    def __init__(
        self,
        base_url:        str,
        user_email:      str,
        api_token:       str,
        space_key:       str,
        parent_page_id:  str | None = None,
        timeout_seconds: float = 30.0,
        transport:       httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url  = base_url.rstrip("/")
        self._auth      = httpx.BasicAuth(user_email, api_token)
        self._space_key = space_key
        self._parent_id = parent_page_id or None
        self._timeout   = timeout_seconds
        self._transport = transport

    async def publish(self, record: ContractRecord, target: str | None = None) -> str:
        title = page_title(record)
        logger.info("Creating Confluence page | title=%s", title)
        if target:
            logger.info("Target URL specified: %s", target)

        body: dict = {
            "type":  "page",
            "title": title,
            "space": {"key": self._space_key},
            "body": {
                "storage": {
                    "value":          render_page(record),
                    "representation": "storage",
                },
            },
        }
        if self._parent_id:
            body["ancestors"] = [{"id": self._parent_id}]

        try:
            async with httpx.AsyncClient(
                base_url=f"{self._base_url}/wiki/rest/api",
                auth=self._auth,
                timeout=self._timeout,
                transport=self._transport,
                headers={"Accept": "application/json"},
            ) as client:
                response = await client.post("/content", json=body)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as exc:
            raise PublishingError(f"Confluence API error: {_api_message(exc.response)}") from exc
        except httpx.HTTPError as exc:
            raise PublishingError(f"Confluence API error: {exc}") from exc
        except ValueError as exc:
            raise PublishingError(f"Confluence API error: invalid JSON response ({exc})") from exc

        try:
            webui = data["_links"]["webui"]
        except (KeyError, TypeError) as exc:
            raise PublishingError("Confluence API error: response has no page link") from exc

        url = f"{self._base_url}/wiki{webui}"
        logger.info("Created Confluence page: %s", url)
        return url


def _api_message(response: httpx.Response) -> str:
    """Prefer the 'message' field Confluence puts in error bodies."""
    try:
        message = response.json().get("message")
    except (ValueError, AttributeError):
        message = None
    return message or f"HTTP {response.status_code}"


# ---------------------------------------------------------------------------
# Demo
# ---------------------------------------------------------------------------

class DemoPublisher(PublishingProvider):

    is_demo = True

    async def publish(self, record: ContractRecord, target: str | None = None) -> str:
        url = target or f"{DEMO_BASE_URL}/{quote(record.contract_title, safe='')}"
        logger.info("DEMO MODE: would have created page at: %s", url)
        return url
