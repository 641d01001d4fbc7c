"""
OpenAlex Integration

Open scholarly catalogue search via the OpenAlex API.

API Documentation: https://docs.openalex.org/

Features:
- Completely free and open (no API key required)
- Comprehensive coverage (200M+ works)
- Work lookup by OpenAlex ID or DOI
- Reference listing through the `cited_by:` filter
"""

from __future__ import annotations

import logging
import re
from typing import Any

from paper_crawler.infrastructure.sources.base_client import (
    BaseAPIClient,
    Capability,
    SearchFilters,
    SearchResult,
)
from paper_crawler.models import Author, Paper, PaperSource

logger = logging.getLogger(__name__)

OA_API_BASE = "https://api.openalex.org"
OA_ID_PREFIX = "https://openalex.org/"

WORK_ID_PATTERN = re.compile(r"^W\d+$")

# Concepts below this score are too loosely attached to count as keywords
CONCEPT_SCORE_THRESHOLD = 0.3

# Polite pool email (required for higher rate limits)
DEFAULT_EMAIL = "paper-crawler@example.com"


def short_work_id(work_id: str) -> str:
    return work_id.replace(OA_ID_PREFIX, "")


class OpenAlexClient(BaseAPIClient):
    """
    OpenAlex API client.

    Usage:
        client = OpenAlexClient(email="your@email.com")
        result = await client.search(["crispr", "gene editing"], limit=25)
        refs = await client.get_references("W2741809807")
    """

    source_name = PaperSource.OPENALEX.value
    capabilities = frozenset({Capability.SEARCH, Capability.GET_BY_EXTERNAL_ID, Capability.GET_REFERENCES})

    def __init__(
        self,
        email: str | None = None,
        timeout: float = 30.0,
        rate_limit: float = 10.0,
        max_retries: int = 1,
        default_retry_after: float = 5.0,
    ):
        """
        Initialize client.

        Args:
            email: Email for polite pool (higher rate limits)
            timeout: Request timeout in seconds
        """
        self._email = email or DEFAULT_EMAIL
        super().__init__(
            base_url=OA_API_BASE,
            timeout=timeout,
            rate_limit=rate_limit,
            headers={"User-Agent": f"paper-crawler/1.0 (mailto:{self._email})"},
            max_retries=max_retries,
            default_retry_after=default_retry_after,
        )

    @staticmethod
    def build_filter(filters: SearchFilters | None) -> str | None:
        if filters is None:
            return None
        parts = []
        if filters.date_from:
            parts.append(f"from_publication_date:{filters.date_from}")
        if filters.date_to:
            parts.append(f"to_publication_date:{filters.date_to}")
        if filters.min_citations:
            parts.append(f"cited_by_count:>{filters.min_citations - 1}")
        return ",".join(parts) or None

    async def search(
        self,
        keywords: list[str],
        filters: SearchFilters | None = None,
        limit: int = 25,
    ) -> SearchResult:
        params: dict[str, Any] = {
            "search": " ".join(keywords),
            "page": 1,
            "per_page": min(limit, 200),
            "sort": "cited_by_count:desc",
            "mailto": self._email,
        }
        filter_str = self.build_filter(filters)
        if filter_str:
            params["filter"] = filter_str

        data = await self._make_request("/works", params=params, operation="search")
        if not isinstance(data, dict):
            return SearchResult(source=self.source_name)

        papers = [self._map_work(w) for w in data.get("results") or []]
        meta = data.get("meta") or {}
        return SearchResult(
            papers=papers,
            total_results=int(meta.get("count") or len(papers)),
            source=self.source_name,
        )

    def accepts_identifier(self, identifier: str) -> bool:
        return bool(WORK_ID_PATTERN.match(short_work_id(identifier))) or "/" in identifier

    async def get_by_external_id(self, external_id: str) -> Paper | None:
        """Get a work by OpenAlex ID (W...) or DOI."""
        work_id = short_work_id(external_id)
        if not WORK_ID_PATTERN.match(work_id):
            work_id = f"doi:{work_id}"

        data = await self._make_request(
            f"/works/{work_id}",
            params={"mailto": self._email},
            operation="get_by_external_id",
        )
        if not isinstance(data, dict) or not data.get("id"):
            return None
        return self._map_work(data)

    async def get_references(self, external_id: str, limit: int = 50) -> list[Paper]:
        """Get works cited by a work."""
        params = {
            "filter": f"cited_by:{short_work_id(external_id)}",
            "per_page": min(limit, 200),
            "mailto": self._email,
        }
        data = await self._make_request("/works", params=params, operation="get_references")
        if not isinstance(data, dict):
            return []
        return [self._map_work(w) for w in data.get("results") or []]

    # =====================================================================
    # Mapping
    # =====================================================================

    def _map_work(self, work: dict[str, Any]) -> Paper:
        authors = []
        for authorship in work.get("authorships") or []:
            author = authorship.get("author") or {}
            institutions = authorship.get("institutions") or []
            authors.append(
                Author(
                    name=author.get("display_name") or "Unknown",
                    affiliation=institutions[0].get("display_name") if institutions else None,
                    orcid=author.get("orcid"),
                )
            )

        keywords = [
            c["display_name"]
            for c in work.get("concepts") or []
            if c.get("display_name") and (c.get("score") or 0) > CONCEPT_SCORE_THRESHOLD
        ]
        keywords.extend(k.get("keyword") or k.get("display_name") for k in work.get("keywords") or [])

        biblio = work.get("biblio") or {}
        first_page = biblio.get("first_page")
        last_page = biblio.get("last_page")
        pages = f"{first_page}-{last_page}" if first_page and last_page else first_page

        primary_location = work.get("primary_location") or {}
        source = primary_location.get("source") or {}
        open_access = work.get("open_access") or {}

        referenced = work.get("referenced_works") or []
        work_id = short_work_id(work.get("id") or "")

        return Paper(
            title=work.get("display_name") or work.get("title") or "Untitled",
            source=self.source_name,
            doi=work.get("doi"),
            external_ids={self.source_name: work_id} if work_id else {},
            authors=authors,
            abstract=self._get_abstract(work),
            keywords=list(dict.fromkeys(k for k in keywords if k)),
            publication_date=work.get("publication_date"),
            journal=source.get("display_name"),
            volume=biblio.get("volume"),
            issue=biblio.get("issue"),
            pages=pages,
            citation_count=work.get("cited_by_count") or 0,
            reference_count=len(referenced),
            open_access_url=open_access.get("oa_url") or primary_location.get("pdf_url"),
            publisher_url=primary_location.get("landing_page_url"),
            references=[short_work_id(ref) for ref in referenced],
        )

    @staticmethod
    def _get_abstract(work: dict[str, Any]) -> str | None:
        """
        Extract abstract from OpenAlex inverted index format.

        OpenAlex stores abstracts as inverted indices ({"word": [positions]}),
        so the text has to be rebuilt by position.
        """
        abstract_index = work.get("abstract_inverted_index")
        if not abstract_index:
            return None

        word_positions = [(pos, word) for word, positions in abstract_index.items() for pos in positions]
        word_positions.sort(key=lambda x: x[0])
        return " ".join(word for _, word in word_positions) or None
