"""
Reference Explorer - Breadth-first expansion along citation references.

Level d (starting at 1) takes the papers discovered at level d-1 as its
frontier and:

1. Collects up to `references_per_paper` reference IDs per frontier paper,
   capped at `max_references_per_level` for the whole level (frontier order
   decides priority).
2. Resolves each ID sequentially through the first adapter that accepts its
   shape (DOI, S2 paper ID, OpenAlex W-id, Scopus ID), sleeping
   `fetch_delay` between fetches. Unresolvable IDs are dropped.
3. Deduplicates the fetched batch, drops anything already linked to the
   query, reconciles the rest against the store and links them at depth d.
4. The newly linked papers become the next frontier.

The walk stops once `max_depth` is reached or a level discovers nothing new.
A citation cycle always leads back to an already-linked paper, so cycles
terminate without extra bookkeeping.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from paper_crawler.application.search.deduplication import PaperDeduplicator
from paper_crawler.core.exceptions import AdapterError, ReferenceResolutionError
from paper_crawler.infrastructure.sources.base_client import Capability
from paper_crawler.models import normalize_doi, normalize_title

if TYPE_CHECKING:
    from paper_crawler.application.search.deduplication import PaperReconciler
    from paper_crawler.core.async_utils import CancellationToken
    from paper_crawler.infrastructure.sources.base_client import BaseAPIClient
    from paper_crawler.infrastructure.store import PaperStore
    from paper_crawler.models import Paper

logger = logging.getLogger(__name__)


@dataclass
class LevelReport:
    depth: int
    candidates: int = 0
    fetched: int = 0
    new_papers: int = 0


@dataclass
class ExplorationResult:
    """Per-level counts and every paper newly linked during the walk."""

    levels: list[LevelReport] = field(default_factory=list)
    papers: list[Paper] = field(default_factory=list)

    @property
    def new_papers(self) -> int:
        return len(self.papers)

    @property
    def max_depth_reached(self) -> int:
        return max((lvl.depth for lvl in self.levels if lvl.new_papers), default=0)


class _KnownPapers:
    """Identity, DOI and title index of papers already linked to a query."""

    def __init__(self, papers: list[Paper]) -> None:
        self.identities: set[str] = set()
        self.dois: set[str] = set()
        self.titles: set[str] = set()
        for paper in papers:
            self.add(paper)

    def add(self, paper: Paper) -> None:
        self.identities.add(paper.identity)
        if paper.doi:
            self.dois.add(normalize_doi(paper.doi))
        else:
            self.titles.add(paper.normalized_title)

    def __contains__(self, paper: Paper) -> bool:
        if paper.identity in self.identities:
            return True
        if paper.doi:
            return normalize_doi(paper.doi) in self.dois
        return normalize_title(paper.title) in self.titles


class ReferenceExplorer:
    """
    Iterative BFS over reference identifiers.

    Usage:
        explorer = ReferenceExplorer(adapters, store, reconciler)
        result = await explorer.explore(seed_papers, query.id, max_depth=2)
    """

    def __init__(
        self,
        adapters: list[BaseAPIClient],
        store: PaperStore,
        reconciler: PaperReconciler,
        *,
        references_per_paper: int = 10,
        max_references_per_level: int = 50,
        fetch_delay: float = 0.1,
    ) -> None:
        self._resolvers = [a for a in adapters if a.supports(Capability.GET_BY_EXTERNAL_ID)]
        self._store = store
        self._reconciler = reconciler
        self._deduplicator = PaperDeduplicator()
        self._references_per_paper = references_per_paper
        self._max_references_per_level = max_references_per_level
        self._fetch_delay = fetch_delay

    def collect_candidates(self, frontier: list[Paper]) -> list[str]:
        """Ordered, de-duplicated reference IDs for one level, within the caps."""
        candidates: dict[str, None] = {}
        for paper in frontier:
            for ref in paper.references[: self._references_per_paper]:
                if len(candidates) >= self._max_references_per_level:
                    return list(candidates)
                ref = ref.strip()
                if ref:
                    candidates.setdefault(ref, None)
        return list(candidates)

    def resolvers_for(self, identifier: str) -> list[BaseAPIClient]:
        return [a for a in self._resolvers if a.accepts_identifier(identifier)]

    async def resolve(self, identifier: str) -> Paper:
        """
        Fetch one reference through the first adapter that returns it.

        Raises:
            ReferenceResolutionError: no adapter accepts or returns the ID
        """
        resolvers = self.resolvers_for(identifier)
        if not resolvers:
            raise ReferenceResolutionError(identifier, "unrecognized identifier")

        for adapter in resolvers:
            try:
                paper = await adapter.get_by_external_id(identifier)
            except AdapterError as e:
                logger.debug(f"Reference {identifier} lookup failed on {adapter.source_name}: {e}")
                continue
            if paper is not None:
                return paper

        raise ReferenceResolutionError(identifier)

    async def explore(
        self,
        seeds: list[Paper],
        query_id: str,
        max_depth: int,
        token: CancellationToken | None = None,
    ) -> ExplorationResult:
        result = ExplorationResult()
        known = _KnownPapers(await self._store.list_for_query(query_id))
        frontier = list(seeds)
        depth = 1

        while depth <= max_depth and frontier:
            if token:
                token.raise_if_cancelled("reference_expansion")

            report = LevelReport(depth=depth)
            result.levels.append(report)

            candidates = self.collect_candidates(frontier)
            report.candidates = len(candidates)
            logger.info(f"Following references at depth {depth}: {len(candidates)} candidates")

            fetched = await self._fetch_all(candidates, token)
            report.fetched = len(fetched)

            new_papers = []
            for paper in self._deduplicator.deduplicate(fetched):
                if paper in known:
                    continue
                stored = await self._reconciler.reconcile(paper)
                known.add(stored)
                if await self._store.link_to_query(stored.id, query_id, depth):
                    new_papers.append(stored)

            report.new_papers = len(new_papers)
            result.papers.extend(new_papers)
            logger.info(f"Depth {depth}: {len(new_papers)} new papers from {len(fetched)} fetched")

            frontier = new_papers
            depth += 1

        return result

    async def _fetch_all(self, candidates: list[str], token: CancellationToken | None) -> list[Paper]:
        fetched = []
        for identifier in candidates:
            if token:
                token.raise_if_cancelled("reference_expansion")
            try:
                fetched.append(await self.resolve(identifier))
            except ReferenceResolutionError as e:
                logger.debug(str(e))
            if self._fetch_delay:
                await asyncio.sleep(self._fetch_delay)
        return fetched
