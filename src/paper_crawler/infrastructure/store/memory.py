"""In-memory PaperStore backed by dictionaries."""

from __future__ import annotations

import copy
import logging
from collections import Counter
from typing import TYPE_CHECKING

from paper_crawler.infrastructure.store.base import PaperStore, StoreStats
from paper_crawler.models import normalize_doi, normalize_title

if TYPE_CHECKING:
    from paper_crawler.models import CrawlSession, Paper, PaperAnalysis, SearchQuery

logger = logging.getLogger(__name__)


class InMemoryPaperStore(PaperStore):
    """
    Dictionary-backed store.

    Records are copied on the way in and out so callers cannot mutate
    stored state without going through upsert.
    """

    def __init__(self) -> None:
        self._papers: dict[str, Paper] = {}
        self._by_doi: dict[str, str] = {}
        self._by_title: dict[str, list[str]] = {}
        # query_id -> {paper_id: depth}, insertion ordered
        self._links: dict[str, dict[str, int]] = {}
        self._queries: dict[str, SearchQuery] = {}
        self._sessions: dict[str, CrawlSession] = {}
        self._analyses: dict[str, PaperAnalysis] = {}

    # ---- Papers ----

    async def find_by_doi(self, doi: str) -> Paper | None:
        paper_id = self._by_doi.get(normalize_doi(doi))
        return self._copy(paper_id)

    async def find_by_title(self, title: str) -> Paper | None:
        candidates = self._by_title.get(normalize_title(title), [])
        for paper_id in candidates:
            if not self._papers[paper_id].doi:
                return self._copy(paper_id)
        return self._copy(candidates[0]) if candidates else None

    async def find_by_id(self, paper_id: str) -> Paper | None:
        return self._copy(paper_id)

    async def upsert(self, paper: Paper) -> Paper:
        stored = copy.deepcopy(paper)
        previous = self._papers.get(stored.id)
        if previous is not None and previous.doi:
            self._by_doi.pop(normalize_doi(previous.doi), None)

        self._papers[stored.id] = stored
        if stored.doi:
            self._by_doi[normalize_doi(stored.doi)] = stored.id
        same_title = self._by_title.setdefault(stored.normalized_title, [])
        if stored.id not in same_title:
            same_title.append(stored.id)
        return copy.deepcopy(stored)

    def _copy(self, paper_id: str | None) -> Paper | None:
        if paper_id is None or paper_id not in self._papers:
            return None
        return copy.deepcopy(self._papers[paper_id])

    # ---- Query links ----

    async def link_to_query(self, paper_id: str, query_id: str, depth: int = 0) -> bool:
        links = self._links.setdefault(query_id, {})
        if paper_id in links:
            return False
        links[paper_id] = depth
        return True

    async def list_for_query(self, query_id: str) -> list[Paper]:
        links = self._links.get(query_id, {})
        ordered = sorted(links.items(), key=lambda item: item[1])
        return [copy.deepcopy(self._papers[pid]) for pid, _ in ordered if pid in self._papers]

    async def get_link_depth(self, paper_id: str, query_id: str) -> int | None:
        return self._links.get(query_id, {}).get(paper_id)

    # ---- Queries ----

    async def save_query(self, query: SearchQuery) -> None:
        self._queries[query.id] = copy.deepcopy(query)

    async def get_query(self, query_id: str) -> SearchQuery | None:
        query = self._queries.get(query_id)
        return copy.deepcopy(query) if query else None

    async def list_queries(self) -> list[SearchQuery]:
        queries = sorted(self._queries.values(), key=lambda q: q.created_at, reverse=True)
        return [copy.deepcopy(q) for q in queries]

    # ---- Sessions ----

    async def save_session(self, session: CrawlSession) -> None:
        self._sessions[session.id] = copy.deepcopy(session)

    async def get_session(self, session_id: str) -> CrawlSession | None:
        session = self._sessions.get(session_id)
        return copy.deepcopy(session) if session else None

    # ---- Analyses ----

    async def save_analysis(self, analysis: PaperAnalysis) -> None:
        self._analyses[analysis.paper_id] = copy.deepcopy(analysis)

    async def get_analysis(self, paper_id: str) -> PaperAnalysis | None:
        analysis = self._analyses.get(paper_id)
        return copy.deepcopy(analysis) if analysis else None

    # ---- Stats ----

    async def stats(self) -> StoreStats:
        breakdown = Counter(a.reading_decision.value for a in self._analyses.values())
        return StoreStats(
            total_papers=len(self._papers),
            total_queries=len(self._queries),
            analyzed_papers=len(self._analyses),
            decision_breakdown=dict(breakdown),
        )
