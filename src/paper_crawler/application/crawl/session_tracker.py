"""
Session Tracker - CrawlSession lifecycle bookkeeping.

    running ──complete()──▶ completed
       └──────fail()──────▶ failed

Terminal states are final. The query's status mirrors the session outcome,
and every transition is persisted immediately.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from paper_crawler.core.exceptions import CrawlError
from paper_crawler.models import CrawlSession, QueryStatus, SessionStatus, utcnow

if TYPE_CHECKING:
    from paper_crawler.infrastructure.store import PaperStore
    from paper_crawler.models import SearchQuery

logger = logging.getLogger(__name__)


class SessionTracker:
    """Persist session transitions for one crawl at a time per query."""

    def __init__(self, store: PaperStore) -> None:
        self._store = store

    async def start(self, query: SearchQuery) -> CrawlSession:
        """Create a running session and mark the query running."""
        session = CrawlSession(query_id=query.id)
        query.status = QueryStatus.RUNNING
        await self._store.save_query(query)
        await self._store.save_session(session)
        logger.info(f"Session {session.id} started for query {query.id}")
        return session

    async def record_progress(
        self,
        session: CrawlSession,
        *,
        papers_found: int | None = None,
        papers_analyzed: int | None = None,
    ) -> None:
        self._ensure_running(session)
        if papers_found is not None:
            session.papers_found = papers_found
        if papers_analyzed is not None:
            session.papers_analyzed = papers_analyzed
        await self._store.save_session(session)

    async def record_error(self, session: CrawlSession, message: str) -> None:
        """Record a tolerated error without changing status."""
        self._ensure_running(session)
        session.errors.append(message)
        await self._store.save_session(session)

    async def complete(self, session: CrawlSession, query: SearchQuery) -> None:
        self._ensure_running(session)
        session.status = SessionStatus.COMPLETED
        session.completed_at = utcnow()
        query.status = QueryStatus.COMPLETED
        query.paper_count = session.papers_found
        await self._store.save_session(session)
        await self._store.update_query(query)
        logger.info(
            f"Session {session.id} completed: {session.papers_found} found, {session.papers_analyzed} analyzed"
        )

    async def fail(self, session: CrawlSession, query: SearchQuery, error: BaseException) -> None:
        self._ensure_running(session)
        session.status = SessionStatus.FAILED
        session.completed_at = utcnow()
        session.errors.append(str(error) or type(error).__name__)
        query.status = QueryStatus.FAILED
        await self._store.save_session(session)
        await self._store.update_query(query)
        logger.error(f"Session {session.id} failed: {error}")

    @staticmethod
    def _ensure_running(session: CrawlSession) -> None:
        if session.is_terminal:
            raise CrawlError(f"Session {session.id} is already {session.status.value}", phase="session")
