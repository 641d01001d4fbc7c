"""
Fan-out Search - Same query to every source, combine whatever succeeds.

Adapters are called concurrently and awaited until all settle. A failed
adapter contributes zero papers; its error is logged and recorded on the
result but never fails the search.

Output order follows adapter order, not completion order, so merge
precedence downstream is deterministic.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from paper_crawler.core.async_utils import gather_settled
from paper_crawler.core.exceptions import AdapterError
from paper_crawler.infrastructure.sources.base_client import Capability, SearchFilters, SearchResult

if TYPE_CHECKING:
    from paper_crawler.infrastructure.sources.base_client import BaseAPIClient
    from paper_crawler.models import Paper, SearchQuery

logger = logging.getLogger(__name__)


@dataclass
class FanOutResult:
    """Concatenated papers plus per-source bookkeeping."""

    papers: list[Paper] = field(default_factory=list)
    counts: dict[str, int] = field(default_factory=dict)
    total_results: dict[str, int] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def succeeded(self) -> list[str]:
        return [source for source in self.counts if source not in self.errors]


class FanOutSearcher:
    """
    Parallel search across source adapters.

    Usage:
        searcher = FanOutSearcher([scopus, s2, openalex, crossref], max_papers=100)
        result = await searcher.search(query)
    """

    def __init__(self, adapters: list[BaseAPIClient], max_papers: int = 100) -> None:
        self._adapters = [a for a in adapters if a.supports(Capability.SEARCH)]
        self._max_papers = max_papers

    @property
    def sources(self) -> list[str]:
        return [a.source_name for a in self._adapters]

    def per_source_limit(self, max_papers: int | None = None) -> int:
        if not self._adapters:
            return 0
        return math.ceil((max_papers or self._max_papers) / len(self._adapters))

    async def search(self, query: SearchQuery, max_papers: int | None = None) -> FanOutResult:
        result = FanOutResult()
        if not self._adapters:
            logger.warning("No searchable sources configured")
            return result

        limit = self.per_source_limit(max_papers)
        filters = SearchFilters.from_query(query)
        logger.info(f"Searching {len(self._adapters)} sources for {query.keyword_query!r} ({limit} per source)")

        outcomes = await gather_settled(*(a.search(query.keywords, filters, limit) for a in self._adapters))

        for adapter, outcome in zip(self._adapters, outcomes):
            source = adapter.source_name
            if isinstance(outcome, SearchResult):
                papers = outcome.papers[:limit]
                result.papers.extend(papers)
                result.counts[source] = len(papers)
                result.total_results[source] = outcome.total_results
                logger.info(f"{source}: {len(papers)} papers (of {outcome.total_results})")
                continue

            if not isinstance(outcome, Exception):
                raise outcome
            if isinstance(outcome, AdapterError):
                logger.warning(f"Search failed on {source}: {outcome}")
            else:
                logger.exception(f"Unexpected error searching {source}", exc_info=outcome)
            result.counts[source] = 0
            result.errors[source] = str(outcome)

        return result
