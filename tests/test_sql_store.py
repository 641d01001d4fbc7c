"""SQL-specific behaviour of SqlPaperStore."""

from __future__ import annotations

import pytest
from sqlalchemy import inspect

from paper_crawler.core.exceptions import PersistenceError
from paper_crawler.infrastructure.store import SqlPaperStore
from paper_crawler.models import Paper


class TestSqlPaperStore:
    async def test_creates_schema(self):
        store = SqlPaperStore("sqlite://")
        tables = set(inspect(store._engine).get_table_names())
        assert {"papers", "paper_query_links", "search_queries", "crawl_sessions", "paper_analyses"} <= tables
        await store.close()

    async def test_file_database_persists(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'nested' / 'papers.db'}"
        first = SqlPaperStore(url)
        paper = await first.upsert(Paper(title="Durable", source="crossref", doi="10.5/d"))
        await first.link_to_query(paper.id, "q", depth=0)
        await first.close()

        second = SqlPaperStore(url)
        try:
            assert (await second.find_by_doi("10.5/D")).id == paper.id
            assert not await second.link_to_query(paper.id, "q", depth=3)
            assert await second.get_link_depth(paper.id, "q") == 0
        finally:
            await second.close()

    async def test_database_failure_is_persistence_error(self):
        store = SqlPaperStore("sqlite://")
        # A disposed in-memory engine reconnects to an empty database
        store._engine.dispose()

        with pytest.raises(PersistenceError) as exc_info:
            await store.find_by_doi("10.1/x")
        assert exc_info.value.context.operation == "find_by_doi"

    def test_unopenable_database(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")

        with pytest.raises(PersistenceError):
            SqlPaperStore(f"sqlite:///{blocker / 'papers.db'}")
