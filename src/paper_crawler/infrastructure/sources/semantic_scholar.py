"""
Semantic Scholar Integration

Cross-domain academic search and citation graph via the Semantic Scholar
Graph API.

API Documentation: https://api.semanticscholar.org/api-docs/

Features:
- Cross-domain search with year, citation and field-of-study filters
- Paper lookup by S2 paper ID or DOI, including the reference list
- Reference listing (works cited by a paper)
"""

from __future__ import annotations

import logging
import re
import urllib.parse
from typing import Any

from paper_crawler.infrastructure.sources.base_client import (
    BaseAPIClient,
    Capability,
    SearchFilters,
    SearchResult,
)
from paper_crawler.models import Author, Paper, PaperSource

logger = logging.getLogger(__name__)

S2_API_BASE = "https://api.semanticscholar.org/graph/v1"

PAPER_ID_PATTERN = re.compile(r"^[0-9a-fA-F]{40}$")

# Scopus subject area codes -> S2 fields of study. Codes without a
# counterpart are not sent.
SUBJECT_AREA_FIELDS = {
    "AGRI": "Agricultural and Food Sciences",
    "ARTS": "Art",
    "BIOC": "Biology",
    "BUSI": "Business",
    "CENG": "Engineering",
    "CHEM": "Chemistry",
    "COMP": "Computer Science",
    "EART": "Geology",
    "ECON": "Economics",
    "ENGI": "Engineering",
    "ENVI": "Environmental Science",
    "IMMU": "Medicine",
    "MATE": "Materials Science",
    "MATH": "Mathematics",
    "MEDI": "Medicine",
    "NEUR": "Biology",
    "PHYS": "Physics",
    "PSYC": "Psychology",
    "SOCI": "Sociology",
}

# Default fields to request
SEARCH_FIELDS = [
    "paperId",
    "externalIds",
    "title",
    "abstract",
    "venue",
    "year",
    "referenceCount",
    "citationCount",
    "influentialCitationCount",
    "isOpenAccess",
    "openAccessPdf",
    "authors",
    "fieldsOfStudy",
    "s2FieldsOfStudy",
    "publicationDate",
    "journal",
]

DETAIL_FIELDS = [
    *SEARCH_FIELDS,
    "references.paperId",
    "references.externalIds",
    "references.title",
    "references.citationCount",
]

REFERENCE_FIELDS = [
    "paperId",
    "externalIds",
    "title",
    "abstract",
    "citationCount",
    "influentialCitationCount",
    "year",
    "authors",
]


def is_doi_like(identifier: str) -> bool:
    return "/" in identifier or "10." in identifier


class SemanticScholarClient(BaseAPIClient):
    """
    Semantic Scholar API client.

    Usage:
        client = SemanticScholarClient(api_key="...")
        result = await client.search(["deep", "learning"], limit=25)
        paper = await client.get_by_external_id("10.1038/nature14539")
    """

    source_name = PaperSource.SEMANTIC_SCHOLAR.value
    capabilities = frozenset({Capability.SEARCH, Capability.GET_BY_EXTERNAL_ID, Capability.GET_REFERENCES})

    def __init__(
        self,
        api_key: str | None = None,
        timeout: float = 30.0,
        rate_limit: float = 10.0,
        max_retries: int = 1,
        default_retry_after: float = 5.0,
    ):
        """
        Initialize client.

        Args:
            api_key: Optional S2 API key (raises the provider's rate limit)
            timeout: Request timeout in seconds
        """
        self._api_key = api_key
        super().__init__(
            base_url=S2_API_BASE,
            timeout=timeout,
            rate_limit=rate_limit,
            headers={"x-api-key": api_key} if api_key else None,
            max_retries=max_retries,
            default_retry_after=default_retry_after,
        )

    @staticmethod
    def build_year_filter(filters: SearchFilters) -> str | None:
        """Year range in S2 syntax: "2019-2021", "2019-" or "-2021"."""
        if not filters.year_from and not filters.year_to:
            return None
        start = str(filters.year_from) if filters.year_from else ""
        end = str(filters.year_to) if filters.year_to else ""
        return f"{start}-{end}"

    async def search(
        self,
        keywords: list[str],
        filters: SearchFilters | None = None,
        limit: int = 25,
    ) -> SearchResult:
        params: dict[str, Any] = {
            "query": " ".join(keywords),
            "offset": 0,
            "limit": min(limit, 100),
            "fields": ",".join(SEARCH_FIELDS),
        }
        if filters:
            year = self.build_year_filter(filters)
            if year:
                params["year"] = year
            if filters.min_citations:
                params["minCitationCount"] = filters.min_citations
            field_of_study = SUBJECT_AREA_FIELDS.get(filters.field.upper()) if filters.field else None
            if field_of_study:
                params["fieldsOfStudy"] = field_of_study
            elif filters.field:
                logger.debug(f"No S2 field of study for subject area {filters.field}, not filtering")

        data = await self._make_request("/paper/search", params=params, operation="search")
        if not isinstance(data, dict):
            return SearchResult(source=self.source_name)

        papers = [self._map_paper(p) for p in data.get("data") or [] if p]
        return SearchResult(
            papers=papers,
            total_results=int(data.get("total") or len(papers)),
            source=self.source_name,
        )

    def accepts_identifier(self, identifier: str) -> bool:
        return is_doi_like(identifier) or bool(PAPER_ID_PATTERN.match(identifier))

    async def get_by_external_id(self, external_id: str) -> Paper | None:
        """
        Get paper details by S2 paper ID or DOI.

        DOIs are looked up through the `DOI:` namespace; the returned paper
        carries its reference list (DOI when known, else S2 paper ID).
        """
        lookup = f"DOI:{external_id}" if is_doi_like(external_id) else external_id
        data = await self._make_request(
            f"/paper/{urllib.parse.quote(lookup, safe=':/')}",
            params={"fields": ",".join(DETAIL_FIELDS)},
            operation="get_by_external_id",
        )
        if not isinstance(data, dict) or not data.get("paperId"):
            return None
        return self._map_paper(data)

    async def search_by_doi(self, doi: str) -> Paper | None:
        return await self.get_by_external_id(doi)

    async def get_references(self, external_id: str, limit: int = 50) -> list[Paper]:
        """Get works cited by a paper."""
        data = await self._make_request(
            f"/paper/{urllib.parse.quote(external_id, safe=':/')}/references",
            params={"offset": 0, "limit": min(limit, 1000), "fields": ",".join(REFERENCE_FIELDS)},
            operation="get_references",
        )
        if not isinstance(data, dict):
            return []

        return [
            self._map_paper(item["citedPaper"])
            for item in data.get("data") or []
            if (item.get("citedPaper") or {}).get("paperId")
        ]

    # =====================================================================
    # Mapping
    # =====================================================================

    def _map_paper(self, s2_paper: dict[str, Any]) -> Paper:
        external = s2_paper.get("externalIds") or {}
        journal = s2_paper.get("journal") or {}

        keywords = list(s2_paper.get("fieldsOfStudy") or [])
        keywords.extend(f.get("category") for f in s2_paper.get("s2FieldsOfStudy") or [] if f.get("category"))

        references = []
        for ref in s2_paper.get("references") or []:
            ref_id = (ref.get("externalIds") or {}).get("DOI") or ref.get("paperId")
            if ref_id:
                references.append(ref_id)

        publication_date = s2_paper.get("publicationDate")
        if not publication_date and s2_paper.get("year"):
            publication_date = f"{s2_paper['year']}-01-01"

        open_access = s2_paper.get("openAccessPdf") or {}
        paper_id = s2_paper.get("paperId")

        return Paper(
            title=s2_paper.get("title") or "Untitled",
            source=self.source_name,
            doi=external.get("DOI"),
            external_ids={self.source_name: paper_id} if paper_id else {},
            authors=[Author(name=a.get("name") or "Unknown") for a in s2_paper.get("authors") or []],
            abstract=s2_paper.get("abstract") or None,
            keywords=list(dict.fromkeys(keywords)),
            publication_date=publication_date,
            journal=journal.get("name") or s2_paper.get("venue") or None,
            volume=journal.get("volume"),
            pages=(journal.get("pages") or "").strip() or None,
            citation_count=s2_paper.get("citationCount") or 0,
            reference_count=s2_paper.get("referenceCount") or 0,
            influential_citation_count=s2_paper.get("influentialCitationCount"),
            open_access_url=open_access.get("url") or None,
            references=list(dict.fromkeys(references)),
        )
