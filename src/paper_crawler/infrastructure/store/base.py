"""
Paper Store - Repository contract for durable crawl state.

The crawl engine depends only on this interface. Implementations:
- InMemoryPaperStore: dictionaries, for tests and one-shot runs
- SqlPaperStore: SQLAlchemy, transactional upserts and a unique
  (paper_id, query_id) link constraint

Lookup semantics:
    find_by_doi    case-insensitive, resolver prefixes ignored
    find_by_title  normalized title (same normalization as in-memory dedup),
                   records without a DOI first since those are title-keyed

Every failure of the underlying storage surfaces as PersistenceError.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from paper_crawler.models import CrawlSession, Paper, PaperAnalysis, SearchQuery


@dataclass
class StoreStats:
    """Aggregate counts across everything the store holds."""

    total_papers: int = 0
    total_queries: int = 0
    analyzed_papers: int = 0
    decision_breakdown: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        return {
            "total_papers": self.total_papers,
            "total_queries": self.total_queries,
            "analyzed_papers": self.analyzed_papers,
            "decision_breakdown": dict(self.decision_breakdown),
        }


class PaperStore(ABC):
    """Async repository for papers, query links, queries, sessions and analyses."""

    # ---- Papers ----

    @abstractmethod
    async def find_by_doi(self, doi: str) -> Paper | None: ...

    @abstractmethod
    async def find_by_title(self, title: str) -> Paper | None: ...

    @abstractmethod
    async def find_by_id(self, paper_id: str) -> Paper | None: ...

    @abstractmethod
    async def upsert(self, paper: Paper) -> Paper:
        """Insert or replace by paper id; returns the stored record."""

    # ---- Query links ----

    @abstractmethod
    async def link_to_query(self, paper_id: str, query_id: str, depth: int = 0) -> bool:
        """
        Link a paper to a query at the given BFS depth.

        Returns False, leaving the existing depth untouched, when the pair is
        already linked.
        """

    @abstractmethod
    async def list_for_query(self, query_id: str) -> list[Paper]:
        """Papers linked to a query, by depth then link order."""

    @abstractmethod
    async def get_link_depth(self, paper_id: str, query_id: str) -> int | None: ...

    # ---- Queries ----

    @abstractmethod
    async def save_query(self, query: SearchQuery) -> None: ...

    @abstractmethod
    async def get_query(self, query_id: str) -> SearchQuery | None: ...

    async def update_query(self, query: SearchQuery) -> None:
        await self.save_query(query)

    @abstractmethod
    async def list_queries(self) -> list[SearchQuery]:
        """All queries, newest first."""

    # ---- Sessions ----

    @abstractmethod
    async def save_session(self, session: CrawlSession) -> None: ...

    @abstractmethod
    async def get_session(self, session_id: str) -> CrawlSession | None: ...

    # ---- Analyses ----

    @abstractmethod
    async def save_analysis(self, analysis: PaperAnalysis) -> None: ...

    @abstractmethod
    async def get_analysis(self, paper_id: str) -> PaperAnalysis | None: ...

    # ---- Stats ----

    @abstractmethod
    async def stats(self) -> StoreStats: ...

    async def close(self) -> None:
        """Release underlying resources."""
        return None
