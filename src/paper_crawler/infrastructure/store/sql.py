"""
SQL PaperStore on SQLAlchemy.

Records are kept as JSON documents next to indexed lookup keys:

    papers              id, identity, doi_key, title_key, data
    paper_query_links   (paper_id, query_id) unique, depth
    search_queries      id, status, created_at, data
    crawl_sessions      id, query_id, status, data
    paper_analyses      paper_id, reading_decision, data

SQLAlchemy's ORM is synchronous; each operation runs in a worker thread via
asyncio.to_thread and commits its own transaction.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, TypeVar

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    create_engine,
    func,
)
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from paper_crawler.core.exceptions import PersistenceError
from paper_crawler.infrastructure.store.base import PaperStore, StoreStats
from paper_crawler.models import (
    CrawlSession,
    Paper,
    PaperAnalysis,
    SearchQuery,
    normalize_doi,
    normalize_title,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

Base = declarative_base()


class PaperRow(Base):
    __tablename__ = "papers"

    id = Column(String(36), primary_key=True)
    identity = Column(String(1024), index=True, nullable=False)
    doi_key = Column(String(255), index=True, nullable=True)
    title_key = Column(String(1024), index=True, nullable=False)
    data = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))


class PaperQueryLinkRow(Base):
    __tablename__ = "paper_query_links"
    __table_args__ = (UniqueConstraint("paper_id", "query_id", name="uq_paper_query"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    paper_id = Column(String(36), ForeignKey("papers.id"), nullable=False)
    query_id = Column(String(36), index=True, nullable=False)
    depth = Column(Integer, nullable=False, default=0)


class SearchQueryRow(Base):
    __tablename__ = "search_queries"

    id = Column(String(36), primary_key=True)
    status = Column(String(16), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    data = Column(JSON, nullable=False)


class CrawlSessionRow(Base):
    __tablename__ = "crawl_sessions"

    id = Column(String(36), primary_key=True)
    query_id = Column(String(36), index=True, nullable=False)
    status = Column(String(16), nullable=False)
    data = Column(JSON, nullable=False)


class PaperAnalysisRow(Base):
    __tablename__ = "paper_analyses"

    paper_id = Column(String(36), primary_key=True)
    reading_decision = Column(String(16), index=True, nullable=False)
    data = Column(JSON, nullable=False)


def create_store_engine(database_url: str, echo: bool = False):
    """Create an engine; SQLite gets thread-safe settings for worker-thread access."""
    kwargs: dict[str, Any] = {"echo": echo}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        else:
            path = database_url.split("///", 1)[-1]
            Path(path).parent.mkdir(parents=True, exist_ok=True)
    else:
        kwargs["pool_pre_ping"] = True
    return create_engine(database_url, **kwargs)


class SqlPaperStore(PaperStore):
    """
    Relational store.

    Usage:
        store = SqlPaperStore("sqlite:///./data/papers.db")
        await store.upsert(paper)
        await store.link_to_query(paper.id, query.id, depth=0)
    """

    def __init__(self, database_url: str, echo: bool = False) -> None:
        try:
            self._engine = create_store_engine(database_url, echo=echo)
            Base.metadata.create_all(bind=self._engine)
        except (SQLAlchemyError, OSError) as e:
            raise PersistenceError(f"Cannot open store at {database_url}: {e}", operation="init") from e
        self._session_factory = sessionmaker(autoflush=False, bind=self._engine)

    async def _run(self, operation: str, func: Callable[..., T], *args: Any) -> T:
        try:
            return await asyncio.to_thread(func, *args)
        except SQLAlchemyError as e:
            logger.exception(f"Store operation {operation} failed")
            raise PersistenceError(f"{operation} failed: {e}", operation=operation) from e

    def _write(self, work: Callable[[Session], T]) -> T:
        with self._session_factory() as db:
            try:
                result = work(db)
                db.commit()
                return result
            except Exception:
                db.rollback()
                raise

    # ---- Papers ----

    async def find_by_doi(self, doi: str) -> Paper | None:
        def work() -> Paper | None:
            with self._session_factory() as db:
                row = db.query(PaperRow).filter(PaperRow.doi_key == normalize_doi(doi)).first()
                return Paper.from_dict(row.data) if row else None

        return await self._run("find_by_doi", work)

    async def find_by_title(self, title: str) -> Paper | None:
        def work() -> Paper | None:
            with self._session_factory() as db:
                row = (
                    db.query(PaperRow)
                    .filter(PaperRow.title_key == normalize_title(title))
                    .order_by(PaperRow.doi_key.isnot(None), PaperRow.created_at)
                    .first()
                )
                return Paper.from_dict(row.data) if row else None

        return await self._run("find_by_title", work)

    async def find_by_id(self, paper_id: str) -> Paper | None:
        def work() -> Paper | None:
            with self._session_factory() as db:
                row = db.get(PaperRow, paper_id)
                return Paper.from_dict(row.data) if row else None

        return await self._run("find_by_id", work)

    async def upsert(self, paper: Paper) -> Paper:
        data = paper.to_dict()

        def work(db: Session) -> Paper:
            row = db.get(PaperRow, paper.id)
            if row is None:
                row = PaperRow(id=paper.id)
                db.add(row)
            row.identity = paper.identity
            row.doi_key = normalize_doi(paper.doi) if paper.doi else None
            row.title_key = paper.normalized_title
            row.data = data
            row.updated_at = datetime.now(timezone.utc)
            return Paper.from_dict(data)

        return await self._run("upsert", self._write, work)

    # ---- Query links ----

    async def link_to_query(self, paper_id: str, query_id: str, depth: int = 0) -> bool:
        def work() -> bool:
            with self._session_factory() as db:
                exists = (
                    db.query(PaperQueryLinkRow.id)
                    .filter(PaperQueryLinkRow.paper_id == paper_id, PaperQueryLinkRow.query_id == query_id)
                    .first()
                )
                if exists:
                    return False
                db.add(PaperQueryLinkRow(paper_id=paper_id, query_id=query_id, depth=depth))
                try:
                    db.commit()
                except IntegrityError:
                    # Lost a race against another writer for the same pair
                    db.rollback()
                    return False
                return True

        return await self._run("link_to_query", work)

    async def list_for_query(self, query_id: str) -> list[Paper]:
        def work() -> list[Paper]:
            with self._session_factory() as db:
                rows = (
                    db.query(PaperRow)
                    .join(PaperQueryLinkRow, PaperQueryLinkRow.paper_id == PaperRow.id)
                    .filter(PaperQueryLinkRow.query_id == query_id)
                    .order_by(PaperQueryLinkRow.depth, PaperQueryLinkRow.id)
                    .all()
                )
                return [Paper.from_dict(row.data) for row in rows]

        return await self._run("list_for_query", work)

    async def get_link_depth(self, paper_id: str, query_id: str) -> int | None:
        def work() -> int | None:
            with self._session_factory() as db:
                row = (
                    db.query(PaperQueryLinkRow)
                    .filter(PaperQueryLinkRow.paper_id == paper_id, PaperQueryLinkRow.query_id == query_id)
                    .first()
                )
                return row.depth if row else None

        return await self._run("get_link_depth", work)

    # ---- Queries ----

    async def save_query(self, query: SearchQuery) -> None:
        def work(db: Session) -> None:
            row = db.get(SearchQueryRow, query.id)
            if row is None:
                row = SearchQueryRow(id=query.id, created_at=query.created_at)
                db.add(row)
            row.status = query.status.value
            row.data = query.to_dict()

        await self._run("save_query", self._write, work)

    async def get_query(self, query_id: str) -> SearchQuery | None:
        def work() -> SearchQuery | None:
            with self._session_factory() as db:
                row = db.get(SearchQueryRow, query_id)
                return SearchQuery.from_dict(row.data) if row else None

        return await self._run("get_query", work)

    async def list_queries(self) -> list[SearchQuery]:
        def work() -> list[SearchQuery]:
            with self._session_factory() as db:
                rows = db.query(SearchQueryRow).order_by(SearchQueryRow.created_at.desc()).all()
                return [SearchQuery.from_dict(row.data) for row in rows]

        return await self._run("list_queries", work)

    # ---- Sessions ----

    async def save_session(self, session: CrawlSession) -> None:
        def work(db: Session) -> None:
            row = db.get(CrawlSessionRow, session.id)
            if row is None:
                row = CrawlSessionRow(id=session.id, query_id=session.query_id)
                db.add(row)
            row.status = session.status.value
            row.data = session.to_dict()

        await self._run("save_session", self._write, work)

    async def get_session(self, session_id: str) -> CrawlSession | None:
        def work() -> CrawlSession | None:
            with self._session_factory() as db:
                row = db.get(CrawlSessionRow, session_id)
                return CrawlSession.from_dict(row.data) if row else None

        return await self._run("get_session", work)

    # ---- Analyses ----

    async def save_analysis(self, analysis: PaperAnalysis) -> None:
        def work(db: Session) -> None:
            row = db.get(PaperAnalysisRow, analysis.paper_id)
            if row is None:
                row = PaperAnalysisRow(paper_id=analysis.paper_id)
                db.add(row)
            row.reading_decision = analysis.reading_decision.value
            row.data = analysis.to_dict()

        await self._run("save_analysis", self._write, work)

    async def get_analysis(self, paper_id: str) -> PaperAnalysis | None:
        def work() -> PaperAnalysis | None:
            with self._session_factory() as db:
                row = db.get(PaperAnalysisRow, paper_id)
                return PaperAnalysis.from_dict(row.data) if row else None

        return await self._run("get_analysis", work)

    # ---- Stats ----

    async def stats(self) -> StoreStats:
        def work() -> StoreStats:
            with self._session_factory() as db:
                breakdown = dict(
                    db.query(PaperAnalysisRow.reading_decision, func.count(PaperAnalysisRow.paper_id))
                    .group_by(PaperAnalysisRow.reading_decision)
                    .all()
                )
                return StoreStats(
                    total_papers=db.query(func.count(PaperRow.id)).scalar() or 0,
                    total_queries=db.query(func.count(SearchQueryRow.id)).scalar() or 0,
                    analyzed_papers=sum(breakdown.values()),
                    decision_breakdown=breakdown,
                )

        return await self._run("stats", work)

    async def close(self) -> None:
        self._engine.dispose()
