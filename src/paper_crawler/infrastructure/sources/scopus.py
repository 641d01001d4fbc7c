"""
Scopus Integration

Elsevier Scopus search and abstract retrieval.

API Documentation: https://dev.elsevier.com/sc_apis.html

Features:
- Boolean field search (TITLE-ABS-KEY, SUBJAREA, PUBYEAR)
- Citation-count ordering
- Abstract retrieval with reference DOIs

Rate Limits:
- Requires an API key (X-ELS-APIKey)
- Default ceiling: 2 req/sec
"""

from __future__ import annotations

import logging
from typing import Any

from paper_crawler.core.exceptions import AdapterError
from paper_crawler.infrastructure.sources.base_client import (
    BaseAPIClient,
    Capability,
    SearchFilters,
    SearchResult,
)
from paper_crawler.models import Author, Paper, PaperSource

logger = logging.getLogger(__name__)

SCOPUS_API_BASE = "https://api.elsevier.com/content"


class ScopusClient(BaseAPIClient):
    """
    Scopus API client.

    Usage:
        client = ScopusClient(api_key="...")
        result = await client.search(["quantum", "computing"], limit=25)
        paper = await client.get_by_external_id("85012345678")
    """

    source_name = PaperSource.SCOPUS.value
    capabilities = frozenset({Capability.SEARCH, Capability.GET_BY_EXTERNAL_ID})

    def __init__(
        self,
        api_key: str,
        timeout: float = 30.0,
        rate_limit: float = 2.0,
        max_retries: int = 1,
        default_retry_after: float = 5.0,
    ):
        if not api_key:
            raise ValueError("Scopus requires an API key")
        super().__init__(
            base_url=SCOPUS_API_BASE,
            timeout=timeout,
            rate_limit=rate_limit,
            headers={"X-ELS-APIKey": api_key},
            max_retries=max_retries,
            default_retry_after=default_retry_after,
        )

    @staticmethod
    def build_query(keywords: list[str], filters: SearchFilters | None = None) -> str:
        """Build a Scopus boolean query; year bounds are inclusive."""
        query = " AND ".join(f'TITLE-ABS-KEY("{kw}")' for kw in keywords)
        if filters is None:
            return query
        if filters.field:
            query += f" AND SUBJAREA({filters.field})"
        if filters.year_from:
            query += f" AND PUBYEAR > {filters.year_from - 1}"
        if filters.year_to:
            query += f" AND PUBYEAR < {filters.year_to + 1}"
        return query

    async def search(
        self,
        keywords: list[str],
        filters: SearchFilters | None = None,
        limit: int = 25,
    ) -> SearchResult:
        params = {
            "query": self.build_query(keywords, filters),
            "start": 0,
            "count": min(limit, 25),
            "sort": "citedby-count",
            "view": "COMPLETE",
        }
        data = await self._make_request("/search/scopus", params=params, operation="search")
        if not isinstance(data, dict):
            return SearchResult(source=self.source_name)

        results = data.get("search-results") or {}
        entries = [e for e in results.get("entry") or [] if "error" not in e]
        papers = [self._map_entry(e) for e in entries]
        if filters and filters.min_citations:
            papers = [p for p in papers if p.citation_count >= filters.min_citations]

        try:
            total = int(results.get("opensearch:totalResults") or 0)
        except (TypeError, ValueError):
            total = len(papers)

        return SearchResult(papers=papers, total_results=total, source=self.source_name)

    def accepts_identifier(self, identifier: str) -> bool:
        return identifier.removeprefix("SCOPUS_ID:").isdigit()

    async def get_by_external_id(self, external_id: str) -> Paper | None:
        """Retrieve a full abstract record (abstract text plus reference DOIs)."""
        scopus_id = external_id.removeprefix("SCOPUS_ID:")
        data = await self._make_request(
            f"/abstract/scopus_id/{scopus_id}",
            params={"view": "FULL"},
            operation="get_by_external_id",
        )
        if not isinstance(data, dict):
            return None

        response = data.get("abstracts-retrieval-response")
        if not isinstance(response, dict):
            raise AdapterError(self.source_name, "unexpected abstract response shape")
        return self._map_abstract(scopus_id, response)

    async def get_abstract(self, scopus_id: str) -> tuple[str | None, list[str]]:
        """Return (abstract, reference DOIs) for a Scopus ID."""
        paper = await self.get_by_external_id(scopus_id)
        if paper is None:
            return None, []
        return paper.abstract, paper.references

    # =====================================================================
    # Mapping
    # =====================================================================

    def _map_entry(self, entry: dict[str, Any]) -> Paper:
        scopus_id = (entry.get("dc:identifier") or "").replace("SCOPUS_ID:", "")

        affiliations = entry.get("affiliation") or []
        first_affiliation = affiliations[0].get("affilname") if affiliations else None
        authors = [
            Author(name=a.get("authname") or "Unknown", affiliation=first_affiliation)
            for a in entry.get("author") or []
        ]
        if not authors and entry.get("dc:creator"):
            authors.append(Author(name=entry["dc:creator"]))

        raw_keywords = entry.get("authkeywords") or ""
        keywords = [k.strip() for k in raw_keywords.split(" | ") if k.strip()]

        pdf_url = None
        publisher_url = None
        for link in entry.get("link") or []:
            if link.get("@ref") == "full-text":
                pdf_url = link.get("@href")
            elif link.get("@ref") == "scopus":
                publisher_url = link.get("@href")

        try:
            citation_count = int(entry.get("citedby-count") or 0)
        except (TypeError, ValueError):
            citation_count = 0

        return Paper(
            title=entry.get("dc:title") or "Untitled",
            source=self.source_name,
            doi=entry.get("prism:doi"),
            external_ids={self.source_name: scopus_id} if scopus_id else {},
            authors=authors,
            abstract=entry.get("dc:description") or None,
            keywords=keywords,
            publication_date=entry.get("prism:coverDate"),
            journal=entry.get("prism:publicationName"),
            volume=entry.get("prism:volume"),
            issue=entry.get("prism:issueIdentifier"),
            pages=entry.get("prism:pageRange"),
            citation_count=citation_count,
            pdf_url=pdf_url,
            publisher_url=publisher_url,
        )

    def _map_abstract(self, scopus_id: str, response: dict[str, Any]) -> Paper:
        coredata = response.get("coredata") or {}
        bibliography = (((response.get("item") or {}).get("bibrecord") or {}).get("tail") or {}).get(
            "bibliography"
        ) or {}

        raw_refs = bibliography.get("reference") or []
        if isinstance(raw_refs, dict):
            raw_refs = [raw_refs]

        references = []
        for ref in raw_refs:
            item_ids = ((ref.get("ref-info") or {}).get("refd-itemidlist") or {}).get("itemid") or []
            if isinstance(item_ids, dict):
                item_ids = [item_ids]
            for item in item_ids:
                if item.get("@idtype") == "DOI" and item.get("#text"):
                    references.append(item["#text"])
                    break

        try:
            citation_count = int(coredata.get("citedby-count") or 0)
        except (TypeError, ValueError):
            citation_count = 0

        return Paper(
            title=coredata.get("dc:title") or "Untitled",
            source=self.source_name,
            doi=coredata.get("prism:doi"),
            external_ids={self.source_name: scopus_id},
            abstract=coredata.get("dc:description") or None,
            publication_date=coredata.get("prism:coverDate"),
            journal=coredata.get("prism:publicationName"),
            citation_count=citation_count,
            reference_count=len(raw_refs),
            references=list(dict.fromkeys(references)),
        )
