"""
Base API Client - Common HTTP request pattern with rate limiting and 429 retry.

Every source adapter derives from BaseAPIClient, which provides:
- httpx.AsyncClient management with a fixed per-call timeout
- A process-wide token bucket per provider (requests-per-second ceiling)
- Retry on 429 honouring Retry-After, exactly `max_retries` times
- 404 treated as "absent" (None), every other failure raised as AdapterError
- A declared capability set; undeclared operations raise
  UnsupportedCapabilityError instead of failing

Adapters never let provider field names escape: each one maps raw JSON into
the canonical Paper inside its own `_map_*` step.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

import httpx
from typing_extensions import Self

from paper_crawler.core.async_utils import get_rate_limiter
from paper_crawler.core.exceptions import (
    AdapterError,
    AdapterTimeoutError,
    RateLimitError,
    UnsupportedCapabilityError,
)

if TYPE_CHECKING:
    from paper_crawler.models import Paper, SearchQuery

logger = logging.getLogger(__name__)

DEFAULT_RETRY_AFTER = 5.0


class Capability(str, Enum):
    """Operations a source adapter may offer."""

    SEARCH = "search"
    GET_BY_EXTERNAL_ID = "get_by_external_id"
    GET_REFERENCES = "get_references"


@dataclass(frozen=True)
class SearchFilters:
    """Provider-neutral search filters."""

    date_from: str | None = None  # YYYY-MM-DD
    date_to: str | None = None
    min_citations: int | None = None
    field: str | None = None  # Subject area / field of study

    @classmethod
    def from_query(cls, query: SearchQuery) -> SearchFilters:
        return cls(
            date_from=query.date_from,
            date_to=query.date_to,
            min_citations=query.min_citations,
            field=query.field,
        )

    @property
    def year_from(self) -> int | None:
        return int(self.date_from[:4]) if self.date_from else None

    @property
    def year_to(self) -> int | None:
        return int(self.date_to[:4]) if self.date_to else None


@dataclass
class SearchResult:
    """One bounded page of mapped papers plus the provider's total-match count."""

    papers: list[Paper] = field(default_factory=list)
    total_results: int = 0
    source: str = ""


class BaseAPIClient:
    """
    Base class for bibliographic source adapters.

    Subclasses set `source_name` and `capabilities`, and override the
    capability methods they declare. They can also override:
    - `_handle_expected_status()`: provider-specific status codes
    - `_parse_response()`: envelope unwrapping

    Example:
        class MyClient(BaseAPIClient):
            source_name = "my_source"
            capabilities = frozenset({Capability.SEARCH})

            async def search(self, keywords, filters=None, limit=25):
                data = await self._make_request("/search", params={"q": " ".join(keywords)})
                ...
    """

    source_name: str = "api"
    capabilities: frozenset[Capability] = frozenset()

    def __init__(
        self,
        base_url: str = "",
        timeout: float = 30.0,
        rate_limit: float = 10.0,
        headers: dict[str, str] | None = None,
        max_retries: int = 1,
        default_retry_after: float = DEFAULT_RETRY_AFTER,
    ) -> None:
        """
        Initialize base client.

        Args:
            base_url: Base URL for the API (paths are appended to it)
            timeout: Per-request timeout in seconds
            rate_limit: Maximum requests per second for this provider
            headers: Default headers for all requests
            max_retries: Retries after a 429 before giving up
            default_retry_after: Wait used when 429 carries no Retry-After
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._max_retries = max_retries
        self._default_retry_after = default_retry_after
        self._limiter = get_rate_limiter(self.source_name, rate_limit)
        self._client = httpx.AsyncClient(
            timeout=self._timeout,
            headers={"Accept": "application/json", **(headers or {})},
            limits=httpx.Limits(
                max_connections=20,
                max_keepalive_connections=10,
                keepalive_expiry=30.0,
            ),
        )

    # =====================================================================
    # Capabilities
    # =====================================================================

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities

    async def search(
        self,
        keywords: list[str],
        filters: SearchFilters | None = None,
        limit: int = 25,
    ) -> SearchResult:
        """Search by keywords; returns a bounded page and the total count."""
        raise UnsupportedCapabilityError(self.source_name, Capability.SEARCH.value)

    async def get_by_external_id(self, external_id: str) -> Paper | None:
        """Fetch one paper by DOI or provider ID; None when absent."""
        raise UnsupportedCapabilityError(self.source_name, Capability.GET_BY_EXTERNAL_ID.value)

    async def get_references(self, external_id: str, limit: int = 50) -> list[Paper]:
        """Fetch the works cited by a paper."""
        raise UnsupportedCapabilityError(self.source_name, Capability.GET_REFERENCES.value)

    def accepts_identifier(self, identifier: str) -> bool:
        """Whether get_by_external_id understands this identifier shape."""
        return False

    # =====================================================================
    # HTTP
    # =====================================================================

    def _build_url(self, url: str) -> str:
        """Build full URL from path or full URL."""
        if url.startswith(("http://", "https://")):
            return url
        return f"{self._base_url}{url}"

    async def _make_request(
        self,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        operation: str | None = None,
    ) -> Any:
        """
        Make a rate-limited GET request.

        Returns:
            Parsed JSON, or None when the provider reports the item absent

        Raises:
            RateLimitError: still rate limited after `max_retries` retries
            AdapterTimeoutError: the call exceeded the timeout
            AdapterError: any other transport or HTTP failure
        """
        full_url = self._build_url(url)

        for attempt in range(self._max_retries + 1):
            await self._limiter.acquire()
            try:
                response = await self._client.get(full_url, params=params)
            except httpx.TimeoutException as e:
                raise AdapterTimeoutError(self.source_name, self._timeout, operation=operation) from e
            except httpx.RequestError as e:
                raise AdapterError(self.source_name, f"request failed: {e}", operation=operation) from e

            expected = self._handle_expected_status(response, full_url)
            if expected is not _CONTINUE:
                return expected

            if response.status_code == 429:
                retry_after = self._get_retry_after(response)
                if attempt < self._max_retries:
                    logger.warning(
                        f"{self.source_name}: Rate limited (429), "
                        f"retry {attempt + 1}/{self._max_retries} in {retry_after:.1f}s"
                    )
                    await asyncio.sleep(retry_after)
                    continue
                raise RateLimitError(self.source_name, retry_after=retry_after, operation=operation)

            if response.status_code >= 400:
                raise AdapterError(
                    self.source_name,
                    f"HTTP error {response.status_code}",
                    operation=operation,
                    retryable=response.status_code >= 500,
                )

            try:
                return self._parse_response(response)
            except ValueError as e:
                raise AdapterError(
                    self.source_name, f"invalid JSON response: {e}", operation=operation, retryable=False
                ) from e

        raise RateLimitError(self.source_name, operation=operation)

    def _handle_expected_status(self, response: httpx.Response, url: str) -> Any:
        """
        Handle status codes that short-circuit normal processing.

        Return a value to short-circuit, or the sentinel _CONTINUE.
        Default: 404 means the item does not exist.
        """
        if response.status_code == 404:
            logger.debug(f"{self.source_name}: not found - {url}")
            return None
        return _CONTINUE

    def _parse_response(self, response: httpx.Response) -> Any:
        """Parse response body. Override for envelope unwrapping."""
        return response.json()

    def _get_retry_after(self, response: httpx.Response) -> float:
        """Extract Retry-After from response headers, else the default delay."""
        try:
            return float(response.headers.get("Retry-After", self._default_retry_after))
        except (ValueError, TypeError):
            return self._default_retry_after

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()


# Sentinel object to indicate "continue normal processing" from _handle_expected_status
_CONTINUE = object()
