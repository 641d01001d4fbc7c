"""
Paper Crawler - Runs one SearchQuery end to end.

Phases:
    1. search      fan out to every source, tolerate partial failure
    2. persist     deduplicate, reconcile with the store, link at depth 0
    3. references  optional BFS along citation references
    4. analysis    screen, then analyze survivors (skipped without an analyzer)

The session is created running before phase 1 and completed after phase 4.
Any exception in any phase, or cancellation of the calling task, marks
session and query failed, records the message and is re-raised to the
caller.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from paper_crawler.application.search.deduplication import PaperDeduplicator
from paper_crawler.core.exceptions import PersistenceError

if TYPE_CHECKING:
    from paper_crawler.application.crawl.reference_explorer import ExplorationResult, ReferenceExplorer
    from paper_crawler.application.crawl.session_tracker import SessionTracker
    from paper_crawler.application.screening import PaperAnalyzer, ScreeningGate
    from paper_crawler.application.search.deduplication import PaperReconciler
    from paper_crawler.application.search.fanout import FanOutSearcher
    from paper_crawler.core.async_utils import CancellationToken
    from paper_crawler.infrastructure.store import PaperStore
    from paper_crawler.models import CrawlSession, Paper, PaperAnalysis, SearchQuery

logger = logging.getLogger(__name__)


@dataclass
class CrawlReport:
    """Outcome of a completed crawl."""

    session: CrawlSession
    seed_papers: list[Paper] = field(default_factory=list)
    exploration: ExplorationResult | None = None
    analyses: list[PaperAnalysis] = field(default_factory=list)
    skipped: int = 0
    search_errors: dict[str, str] = field(default_factory=dict)
    summary: str | None = None


class PaperCrawler:
    """
    Orchestrates search, merge, reference expansion and analysis.

    Usage:
        crawler = container.crawler()
        report = await crawler.crawl(SearchQuery(keywords=["quantum", "computing"]))
        report.session.status  # SessionStatus.COMPLETED
    """

    def __init__(
        self,
        store: PaperStore,
        searcher: FanOutSearcher,
        reconciler: PaperReconciler,
        explorer: ReferenceExplorer,
        tracker: SessionTracker,
        gate: ScreeningGate | None = None,
        analyzer: PaperAnalyzer | None = None,
        *,
        max_papers: int = 100,
        max_reference_depth: int = 2,
    ) -> None:
        self._store = store
        self._searcher = searcher
        self._reconciler = reconciler
        self._explorer = explorer
        self._tracker = tracker
        self._gate = gate
        self._analyzer = analyzer
        self._deduplicator = PaperDeduplicator()
        self._max_papers = max_papers
        self._max_reference_depth = max_reference_depth

    def set_research_context(self, context: str) -> None:
        """Topic description used by screening and analysis from the next crawl on."""
        if self._gate is not None:
            self._gate.context = context
        if self._analyzer is not None:
            self._analyzer.context = context

    async def crawl(
        self,
        query: SearchQuery,
        token: CancellationToken | None = None,
        *,
        summarize: bool = False,
    ) -> CrawlReport:
        """
        Run a crawl for `query`.

        Raises:
            Any exception from a phase, after the session has been marked failed.
        """
        session = await self._tracker.start(query)
        report = CrawlReport(session=session)

        try:
            self._checkpoint(token, "search")
            report.seed_papers = await self._search_and_persist(query, session, report)

            depth = min(query.max_reference_depth, self._max_reference_depth)
            if query.include_references and depth > 0 and report.seed_papers:
                self._checkpoint(token, "reference_expansion")
                report.exploration = await self._explorer.explore(report.seed_papers, query.id, depth, token)
                await self._tracker.record_progress(
                    session, papers_found=session.papers_found + report.exploration.new_papers
                )

            if self._analyzer is not None:
                self._checkpoint(token, "analysis")
                await self._analyze(query, session, report, summarize)

            await self._tracker.complete(session, query)
            return report

        except asyncio.CancelledError as exc:
            logger.warning(f"Crawl for query {query.id} was cancelled")
            await self._record_failure(session, query, exc)
            raise

        except Exception as exc:
            logger.exception(f"Crawl failed for query {query.id}")
            await self._record_failure(session, query, exc)
            raise

    async def _record_failure(self, session: CrawlSession, query: SearchQuery, exc: BaseException) -> None:
        if session.is_terminal:
            return
        try:
            await self._tracker.fail(session, query, exc)
        except PersistenceError:
            logger.exception(f"Could not record failure of session {session.id}")

    async def _search_and_persist(self, query: SearchQuery, session: CrawlSession, report: CrawlReport) -> list[Paper]:
        result = await self._searcher.search(query, self._max_papers)
        for message in result.errors.values():
            await self._tracker.record_error(session, message)
        report.search_errors = dict(result.errors)
        logger.info(f"Found {len(result.papers)} initial papers")

        unique = self._deduplicator.deduplicate(result.papers)
        logger.info(f"{len(unique)} unique papers after deduplication")

        seeds = []
        for paper in unique:
            stored = await self._reconciler.reconcile(paper)
            if await self._store.link_to_query(stored.id, query.id, 0):
                seeds.append(stored)

        await self._tracker.record_progress(session, papers_found=len(seeds))
        return seeds

    async def _analyze(self, query: SearchQuery, session: CrawlSession, report: CrawlReport, summarize: bool) -> None:
        papers = await self._store.list_for_query(query.id)

        selected = []
        for paper in papers:
            if self._gate is None:
                selected.append(paper)
                continue
            decision = await self._gate.screen(paper)
            if decision.should_analyze:
                selected.append(paper)
            else:
                logger.debug(f"Screened out {paper.id}: {decision.reason}")
        report.skipped = len(papers) - len(selected)
        logger.info(f"Analyzing {len(selected)} of {len(papers)} papers")

        report.analyses = await self._analyzer.batch_analyze(selected)
        for analysis in report.analyses:
            await self._store.save_analysis(analysis)
        await self._tracker.record_progress(session, papers_analyzed=len(report.analyses))

        if summarize and report.analyses:
            report.summary = await self._analyzer.summarize_collection(selected, report.analyses)

    @staticmethod
    def _checkpoint(token: CancellationToken | None, phase: str) -> None:
        if token is not None:
            token.raise_if_cancelled(phase)
