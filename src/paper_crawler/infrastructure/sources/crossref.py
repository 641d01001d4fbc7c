"""
CrossRef API Integration

Metadata search and DOI resolution through the CrossRef REST API.
CrossRef is the official DOI registration agency for scholarly publications.

API Documentation: https://api.crossref.org/swagger-ui/index.html

Features:
- Work search sorted by citation count
- DOI metadata resolution, including deposited reference DOIs
- Citation counts (is-referenced-by-count)

Rate Limits:
- Polite pool (with email): ~50 req/sec
- Anonymous: ~1 req/sec (strongly discouraged)
"""

from __future__ import annotations

import logging
import re
import urllib.parse
from typing import TYPE_CHECKING, Any

from paper_crawler.infrastructure.sources.base_client import (
    BaseAPIClient,
    Capability,
    SearchFilters,
    SearchResult,
)
from paper_crawler.models import Author, Paper, PaperSource, strip_doi_prefix

if TYPE_CHECKING:
    import httpx

logger = logging.getLogger(__name__)

CROSSREF_API_BASE = "https://api.crossref.org"

# Default contact email (required for polite pool)
DEFAULT_EMAIL = "paper-crawler@example.com"

_TAG_PATTERN = re.compile(r"<[^>]+>")


class CrossRefClient(BaseAPIClient):
    """
    CrossRef API client for DOI metadata and work search.

    Usage:
        client = CrossRefClient(email="your@email.com")
        result = await client.search(["machine learning", "healthcare"], limit=25)
        paper = await client.get_by_external_id("10.1001/jama.2024.12345")

    Note:
        Always provide your email for access to the "polite pool" with
        higher rate limits. Without email, requests are severely throttled.
    """

    source_name = PaperSource.CROSSREF.value
    capabilities = frozenset({Capability.SEARCH, Capability.GET_BY_EXTERNAL_ID})

    def __init__(
        self,
        email: str | None = None,
        timeout: float = 30.0,
        rate_limit: float = 50.0,
        max_retries: int = 1,
        default_retry_after: float = 5.0,
    ):
        """
        Initialize CrossRef client.

        Args:
            email: Contact email for polite pool access (strongly recommended)
            timeout: Request timeout in seconds
        """
        self._email = email or DEFAULT_EMAIL
        super().__init__(
            base_url=CROSSREF_API_BASE,
            timeout=timeout,
            rate_limit=rate_limit,
            headers={"User-Agent": f"paper-crawler/1.0 (mailto:{self._email})"},
            max_retries=max_retries,
            default_retry_after=default_retry_after,
        )

    def _parse_response(self, response: httpx.Response) -> Any:
        """Extract 'message' key from CrossRef JSON responses."""
        data = response.json()
        if isinstance(data, dict):
            return data.get("message", data)
        return data

    @staticmethod
    def build_filter(filters: SearchFilters | None) -> str | None:
        if filters is None:
            return None
        parts = []
        if filters.date_from:
            parts.append(f"from-pub-date:{filters.date_from}")
        if filters.date_to:
            parts.append(f"until-pub-date:{filters.date_to}")
        return ",".join(parts) or None

    async def search(
        self,
        keywords: list[str],
        filters: SearchFilters | None = None,
        limit: int = 25,
    ) -> SearchResult:
        params: dict[str, Any] = {
            "query": " ".join(keywords),
            "offset": 0,
            "rows": min(limit, 1000),
            "sort": "is-referenced-by-count",
            "order": "desc",
            "mailto": self._email,
        }
        filter_str = self.build_filter(filters)
        if filter_str:
            params["filter"] = filter_str

        data = await self._make_request("/works", params=params, operation="search")
        if not isinstance(data, dict):
            return SearchResult(source=self.source_name)

        papers = [self._map_work(w) for w in data.get("items") or []]
        # CrossRef has no citation-count filter
        if filters and filters.min_citations:
            papers = [p for p in papers if p.citation_count >= filters.min_citations]

        return SearchResult(
            papers=papers,
            total_results=int(data.get("total-results") or len(papers)),
            source=self.source_name,
        )

    def accepts_identifier(self, identifier: str) -> bool:
        return "/" in identifier

    async def get_by_external_id(self, external_id: str) -> Paper | None:
        """Get metadata for a single work by DOI (with or without resolver prefix)."""
        doi = strip_doi_prefix(external_id) or ""
        data = await self._make_request(
            f"/works/{urllib.parse.quote(doi, safe='')}",
            params={"mailto": self._email},
            operation="get_by_external_id",
        )
        if not isinstance(data, dict) or not data.get("DOI"):
            return None
        return self._map_work(data)

    # =====================================================================
    # Mapping
    # =====================================================================

    @staticmethod
    def extract_publication_date(work: dict[str, Any]) -> str | None:
        """Build YYYY-MM-DD from `issued.date-parts`, defaulting month/day to 1."""
        parts = ((work.get("issued") or {}).get("date-parts") or [[]])[0] or []
        if not parts or parts[0] is None:
            return None
        year = parts[0]
        month = parts[1] if len(parts) > 1 else 1
        day = parts[2] if len(parts) > 2 else 1
        return f"{year:04d}-{month:02d}-{day:02d}"

    @staticmethod
    def _pick_pdf_link(work: dict[str, Any]) -> str | None:
        for link in work.get("link") or []:
            if link.get("content-type") == "application/pdf" or link.get("intended-application") == "text-mining":
                return link.get("URL")
        return None

    def _map_work(self, work: dict[str, Any]) -> Paper:
        authors = []
        for a in work.get("author") or []:
            name = a.get("name") or f"{a.get('given') or ''} {a.get('family') or ''}".strip()
            affiliations = a.get("affiliation") or []
            authors.append(
                Author(
                    name=name or "Unknown",
                    affiliation=affiliations[0].get("name") if affiliations else None,
                    orcid=a.get("ORCID"),
                )
            )

        abstract = work.get("abstract")
        if abstract:
            abstract = re.sub(r"\s+", " ", _TAG_PATTERN.sub(" ", abstract)).strip() or None

        titles = work.get("title") or []
        containers = work.get("container-title") or []
        references = [ref["DOI"] for ref in work.get("reference") or [] if ref.get("DOI")]

        return Paper(
            title=titles[0] if titles else "Untitled",
            source=self.source_name,
            doi=work.get("DOI"),
            authors=authors,
            abstract=abstract,
            keywords=list(dict.fromkeys(work.get("subject") or [])),
            publication_date=self.extract_publication_date(work),
            journal=containers[0] if containers else None,
            publisher=work.get("publisher"),
            volume=work.get("volume"),
            issue=work.get("issue"),
            pages=work.get("page"),
            citation_count=work.get("is-referenced-by-count") or 0,
            reference_count=work.get("references-count") or 0,
            pdf_url=self._pick_pdf_link(work),
            publisher_url=work.get("URL"),
            references=list(dict.fromkeys(references)),
        )
