"""Tests for in-memory deduplication and store reconciliation."""

from __future__ import annotations

import asyncio

from paper_crawler.application.search import PaperDeduplicator, PaperReconciler, deduplicate_papers
from paper_crawler.infrastructure.store import InMemoryPaperStore
from paper_crawler.models import Author, Paper

# ============================================================
# PaperDeduplicator
# ============================================================


class TestPaperDeduplicator:
    def test_case_insensitive_doi_merge(self):
        a = Paper(title="Attention", source="scopus", doi="10.1/abc", citation_count=12)
        b = Paper(title="Attention", source="crossref", doi="10.1/ABC", citation_count=5, abstract="From B")

        result = deduplicate_papers([a, b])

        assert len(result) == 1
        merged = result[0]
        assert merged.citation_count == 12
        assert merged.abstract == "From B"
        assert merged.doi == "10.1/abc"

    def test_title_variants_collapse_without_doi(self):
        a = Paper(title="Deep Learning, 2020!", source="openalex")
        b = Paper(title="deep learning 2020", source="semantic_scholar", publication_date="2020-01-01")

        result = deduplicate_papers([a, b])

        assert len(result) == 1
        assert result[0].title == "Deep Learning, 2020!"
        assert result[0].publication_date == "2020-01-01"

    def test_doi_and_title_records_stay_distinct(self):
        with_doi = Paper(title="Deep Learning", source="crossref", doi="10.9/dl")
        without_doi = Paper(title="Deep Learning", source="openalex")

        assert len(deduplicate_papers([with_doi, without_doi])) == 2

    def test_idempotent(self, make_paper):
        papers = [
            make_paper(doi="10.1/a"),
            make_paper(doi="10.1/A", citation_count=3),
            make_paper("Same Title"),
            make_paper("same title!"),
        ]
        once = deduplicate_papers(papers)
        twice = deduplicate_papers(once)

        assert [p.identity for p in twice] == [p.identity for p in once]
        assert [p.citation_count for p in twice] == [p.citation_count for p in once]

    def test_output_covers_every_input_identity(self, make_paper):
        papers = [make_paper(doi=f"10.1/{i % 3}") for i in range(7)] + [make_paper() for _ in range(2)]
        result = deduplicate_papers(papers)

        assert {p.identity for p in result} == {p.identity for p in papers}
        assert len(result) == 5

    def test_first_seen_wins_conflicts(self):
        a = Paper(title="T", source="scopus", doi="10.1/x", journal="First")
        b = Paper(title="T", source="openalex", doi="10.1/x", journal="Second")

        assert deduplicate_papers([a, b])[0].journal == "First"
        assert deduplicate_papers([b, a])[0].journal == "Second"

    def test_inputs_not_mutated(self):
        a = Paper(title="T", source="scopus", doi="10.1/x")
        b = Paper(title="T", source="openalex", doi="10.1/x", abstract="text")

        deduplicate_papers([a, b])

        assert a.abstract is None

    def test_stats(self):
        dedup = PaperDeduplicator()
        dedup.deduplicate(
            [
                Paper(title="A", source="scopus", doi="10.1/a"),
                Paper(title="A", source="crossref", doi="10.1/a"),
                Paper(title="B", source="openalex"),
                Paper(title="b", source="scopus"),
            ]
        )
        stats = dedup.last_stats
        assert stats.total_input == 4
        assert stats.unique_papers == 2
        assert stats.duplicates_removed == 2
        assert stats.dedup_by_doi == 1
        assert stats.dedup_by_title == 1
        assert stats.by_source == {"scopus": 2, "crossref": 1, "openalex": 1}


# ============================================================
# PaperReconciler
# ============================================================


class TestPaperReconciler:
    async def test_inserts_new_paper(self, store):
        reconciler = PaperReconciler(store)
        stored = await reconciler.reconcile(Paper(title="New", source="openalex", doi="10.1/new"))

        assert (await store.find_by_doi("10.1/NEW")).id == stored.id

    async def test_merges_into_existing_record(self, store):
        reconciler = PaperReconciler(store)
        first = await reconciler.reconcile(Paper(title="T", source="scopus", doi="10.1/x", citation_count=2))
        second = await reconciler.reconcile(
            Paper(title="T", source="openalex", doi="10.1/X", citation_count=9, abstract="abs")
        )

        assert second.id == first.id
        stored = await store.find_by_id(first.id)
        assert stored.citation_count == 9
        assert stored.abstract == "abs"
        assert (await store.stats()).total_papers == 1

    async def test_title_match_only_with_same_identity(self, store):
        reconciler = PaperReconciler(store)
        doi_paper = await reconciler.reconcile(Paper(title="Shared Title", source="crossref", doi="10.2/s"))
        title_paper = await reconciler.reconcile(Paper(title="Shared title.", source="openalex"))

        assert title_paper.id != doi_paper.id
        again = await reconciler.reconcile(Paper(title="shared title", source="scopus", authors=[Author(name="X")]))
        assert again.id == title_paper.id
        assert again.authors[0].name == "X"

    async def test_concurrent_reconcile_creates_one_record(self):
        store = InMemoryPaperStore()
        reconciler = PaperReconciler(store)
        papers = [Paper(title="Race", source=s, doi="10.3/race") for s in ("scopus", "openalex", "crossref")]

        results = await asyncio.gather(*(reconciler.reconcile(p) for p in papers))

        assert len({r.id for r in results}) == 1
        assert (await store.stats()).total_papers == 1
