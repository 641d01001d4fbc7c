"""Contract tests run against every PaperStore implementation."""

from __future__ import annotations

from datetime import timedelta

import pytest

from paper_crawler.infrastructure.store import InMemoryPaperStore, SqlPaperStore
from paper_crawler.models import (
    CrawlSession,
    Paper,
    PaperAnalysis,
    QueryStatus,
    ReadingDecision,
    SearchQuery,
    SessionStatus,
)


@pytest.fixture(params=["memory", "sql"])
async def paper_store(request):
    if request.param == "memory":
        s = InMemoryPaperStore()
    else:
        s = SqlPaperStore("sqlite://")
    yield s
    await s.close()


# ============================================================
# Papers
# ============================================================


class TestPaperLookup:
    async def test_find_by_doi_case_insensitive(self, paper_store):
        stored = await paper_store.upsert(Paper(title="T", source="crossref", doi="10.1/ABC"))

        found = await paper_store.find_by_doi("https://doi.org/10.1/abc")

        assert found.id == stored.id
        assert found.doi == "10.1/ABC"

    async def test_find_by_title_normalized(self, paper_store):
        stored = await paper_store.upsert(Paper(title="Deep Learning, 2020!", source="openalex"))

        assert (await paper_store.find_by_title("deep   learning 2020")).id == stored.id
        assert await paper_store.find_by_title("shallow learning") is None

    async def test_find_by_title_prefers_doi_less_record(self, paper_store):
        await paper_store.upsert(Paper(title="Shared", source="crossref", doi="10.1/s"))
        title_keyed = await paper_store.upsert(Paper(title="Shared", source="openalex"))

        assert (await paper_store.find_by_title("shared")).id == title_keyed.id

    async def test_upsert_replaces_by_id(self, paper_store):
        paper = await paper_store.upsert(Paper(title="T", source="scopus", doi="10.1/x"))
        paper.citation_count = 50
        await paper_store.upsert(paper)

        assert (await paper_store.find_by_id(paper.id)).citation_count == 50
        assert (await paper_store.stats()).total_papers == 1

    async def test_returned_records_are_detached(self, paper_store):
        paper = await paper_store.upsert(Paper(title="T", source="scopus"))
        paper.abstract = "changed locally"

        assert (await paper_store.find_by_id(paper.id)).abstract is None

    async def test_missing_id(self, paper_store):
        assert await paper_store.find_by_id("nope") is None


# ============================================================
# Query links
# ============================================================


class TestQueryLinks:
    async def test_link_once(self, paper_store):
        paper = await paper_store.upsert(Paper(title="T", source="scopus"))

        assert await paper_store.link_to_query(paper.id, "q1", depth=1)
        assert not await paper_store.link_to_query(paper.id, "q1", depth=0)
        assert await paper_store.get_link_depth(paper.id, "q1") == 1

    async def test_same_paper_many_queries(self, paper_store):
        paper = await paper_store.upsert(Paper(title="T", source="scopus"))

        assert await paper_store.link_to_query(paper.id, "q1")
        assert await paper_store.link_to_query(paper.id, "q2", depth=2)
        assert await paper_store.get_link_depth(paper.id, "q2") == 2
        assert await paper_store.get_link_depth(paper.id, "q3") is None

    async def test_list_for_query_ordered_by_depth(self, paper_store):
        deep = await paper_store.upsert(Paper(title="Deep", source="openalex"))
        seed_a = await paper_store.upsert(Paper(title="Seed A", source="openalex"))
        seed_b = await paper_store.upsert(Paper(title="Seed B", source="openalex"))
        await paper_store.link_to_query(deep.id, "q", depth=1)
        await paper_store.link_to_query(seed_a.id, "q", depth=0)
        await paper_store.link_to_query(seed_b.id, "q", depth=0)

        papers = await paper_store.list_for_query("q")

        assert [p.title for p in papers] == ["Seed A", "Seed B", "Deep"]
        assert await paper_store.list_for_query("other") == []


# ============================================================
# Queries, sessions, analyses
# ============================================================


class TestStateRecords:
    async def test_query_round_trip(self, paper_store):
        query = SearchQuery(keywords=["x"], include_references=True)
        await paper_store.save_query(query)
        query.status = QueryStatus.COMPLETED
        query.paper_count = 7
        await paper_store.update_query(query)

        stored = await paper_store.get_query(query.id)

        assert stored.status is QueryStatus.COMPLETED
        assert stored.paper_count == 7
        assert stored.include_references is True

    async def test_list_queries_newest_first(self, paper_store):
        older = SearchQuery(keywords=["old"])
        newer = SearchQuery(keywords=["new"], created_at=older.created_at + timedelta(seconds=5))
        await paper_store.save_query(older)
        await paper_store.save_query(newer)

        assert [q.keywords for q in await paper_store.list_queries()] == [["new"], ["old"]]

    async def test_session_round_trip(self, paper_store):
        session = CrawlSession(query_id="q", errors=["scopus: HTTP error 500"])
        await paper_store.save_session(session)
        session.status = SessionStatus.COMPLETED
        await paper_store.save_session(session)

        stored = await paper_store.get_session(session.id)

        assert stored.status is SessionStatus.COMPLETED
        assert stored.errors == ["scopus: HTTP error 500"]
        assert await paper_store.get_session("missing") is None

    async def test_analysis_and_stats(self, paper_store):
        a = await paper_store.upsert(Paper(title="A", source="scopus"))
        b = await paper_store.upsert(Paper(title="B", source="scopus"))
        await paper_store.save_query(SearchQuery(keywords=["x"]))
        await paper_store.save_analysis(PaperAnalysis.default(a.id))
        must = PaperAnalysis.default(b.id)
        must.reading_decision = ReadingDecision.MUST_READ
        await paper_store.save_analysis(must)

        stats = await paper_store.stats()

        assert stats.total_papers == 2
        assert stats.total_queries == 1
        assert stats.analyzed_papers == 2
        assert stats.decision_breakdown == {"maybe_read": 1, "must_read": 1}
        assert (await paper_store.get_analysis(b.id)).reading_decision is ReadingDecision.MUST_READ
