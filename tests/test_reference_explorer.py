"""Tests for breadth-first reference expansion."""

from __future__ import annotations

import pytest

from paper_crawler.application.crawl import ReferenceExplorer
from paper_crawler.application.search import PaperReconciler
from paper_crawler.core.async_utils import CancellationToken
from paper_crawler.core.exceptions import AdapterError, CrawlCancelledError, ReferenceResolutionError
from paper_crawler.infrastructure.sources.base_client import Capability
from paper_crawler.models import Paper


def make_explorer(store, adapters, **kwargs):
    kwargs.setdefault("fetch_delay", 0)
    return ReferenceExplorer(adapters, store, PaperReconciler(store), **kwargs)


async def seed(store, query_id, *papers):
    stored = []
    for paper in papers:
        paper = await store.upsert(paper)
        await store.link_to_query(paper.id, query_id, 0)
        stored.append(paper)
    return stored


# ============================================================
# Candidate collection
# ============================================================


class TestCollectCandidates:
    def test_per_paper_and_per_level_caps(self, store, make_paper):
        explorer = make_explorer(store, [], references_per_paper=2, max_references_per_level=3)
        frontier = [
            make_paper(references=["10.1/a", "10.1/b", "10.1/c"]),
            make_paper(references=["10.1/b", "10.1/d", "10.1/e"]),
        ]

        assert explorer.collect_candidates(frontier) == ["10.1/a", "10.1/b", "10.1/d"]

    def test_skips_blank_references(self, store, make_paper):
        explorer = make_explorer(store, [])
        assert explorer.collect_candidates([make_paper(references=["", "  ", "10.1/a"])]) == ["10.1/a"]


# ============================================================
# Resolution
# ============================================================


class TestResolve:
    async def test_routes_by_identifier_shape(self, store, make_adapter):
        target = Paper(title="W paper", source="openalex")
        dois = make_adapter("crossref", accepts=lambda i: "/" in i)
        works = make_adapter("openalex", lookup={"W1": target}, accepts=lambda i: i.startswith("W"))
        explorer = make_explorer(store, [dois, works])

        assert (await explorer.resolve("W1")).title == "W paper"
        dois.get_by_external_id.assert_not_awaited()

    async def test_falls_through_failing_adapter(self, store, make_adapter):
        target = Paper(title="Found", source="crossref", doi="10.1/x")
        failing = make_adapter("semantic_scholar")
        failing.get_by_external_id.side_effect = AdapterError("semantic_scholar", "HTTP error 500")
        working = make_adapter("crossref", lookup={"10.1/x": target})
        explorer = make_explorer(store, [failing, working])

        assert (await explorer.resolve("10.1/x")).title == "Found"

    async def test_unresolvable(self, store, make_adapter):
        explorer = make_explorer(store, [make_adapter("crossref", accepts=lambda i: "/" in i)])

        with pytest.raises(ReferenceResolutionError):
            await explorer.resolve("10.1/missing")
        with pytest.raises(ReferenceResolutionError, match="unrecognized"):
            await explorer.resolve("W123")

    async def test_ignores_adapters_without_lookup(self, store, make_adapter):
        search_only = make_adapter("scopus", capabilities=frozenset({Capability.SEARCH}))
        explorer = make_explorer(store, [search_only])

        assert explorer.resolvers_for("10.1/x") == []


# ============================================================
# Exploration
# ============================================================


class TestExplore:
    async def test_citation_cycle_terminates(self, store, make_adapter):
        x = Paper(title="X", source="crossref", doi="10.1/x", references=["10.1/y"])
        y = Paper(title="Y", source="crossref", doi="10.1/y", references=["10.1/x"])
        adapter = make_adapter("crossref", lookup={"10.1/x": x, "10.1/y": y})
        explorer = make_explorer(store, [adapter])
        seeds = await seed(store, "q", x)

        result = await explorer.explore(seeds, "q", max_depth=2)

        linked = await store.list_for_query("q")
        assert [p.title for p in linked] == ["X", "Y"]
        assert await store.get_link_depth(linked[1].id, "q") == 1
        assert result.new_papers == 1
        assert result.max_depth_reached == 1
        assert [lvl.new_papers for lvl in result.levels] == [1, 0]

    async def test_depth_cap(self, store, make_adapter):
        chain = {
            f"10.1/{i}": Paper(title=f"P{i}", source="crossref", doi=f"10.1/{i}", references=[f"10.1/{i + 1}"])
            for i in range(6)
        }
        explorer = make_explorer(store, [make_adapter("crossref", lookup=chain)])
        seeds = await seed(store, "q", chain["10.1/0"])

        result = await explorer.explore(seeds, "q", max_depth=2)

        linked = await store.list_for_query("q")
        assert [p.title for p in linked] == ["P0", "P1", "P2"]
        assert [lvl.depth for lvl in result.levels] == [1, 2]

    async def test_zero_depth_does_nothing(self, store, make_adapter):
        adapter = make_adapter("crossref")
        explorer = make_explorer(store, [adapter])
        seeds = await seed(store, "q", Paper(title="S", source="crossref", references=["10.1/a"]))

        result = await explorer.explore(seeds, "q", max_depth=0)

        assert result.levels == []
        adapter.get_by_external_id.assert_not_awaited()

    async def test_reference_known_by_title_is_not_relinked(self, store, make_adapter):
        seed_paper = Paper(title="Seed", source="openalex", references=["10.1/a", "10.1/b"])
        dup_of_seed = Paper(title="seed", source="crossref")
        fresh = Paper(title="Fresh", source="crossref", doi="10.1/b")
        adapter = make_adapter("crossref", lookup={"10.1/a": dup_of_seed, "10.1/b": fresh})
        explorer = make_explorer(store, [adapter])
        seeds = await seed(store, "q", seed_paper)

        result = await explorer.explore(seeds, "q", max_depth=1)

        assert [p.title for p in result.papers] == ["Fresh"]
        assert len(await store.list_for_query("q")) == 2

    async def test_duplicate_references_in_one_level_link_once(self, store, make_adapter):
        shared = Paper(title="Shared", source="crossref", doi="10.1/shared")
        adapter = make_adapter("crossref", lookup={"10.1/shared": shared, "10.1/SHARED": shared})
        explorer = make_explorer(store, [adapter])
        seeds = await seed(
            store,
            "q",
            Paper(title="A", source="openalex", references=["10.1/shared"]),
            Paper(title="B", source="openalex", references=["10.1/SHARED"]),
        )

        result = await explorer.explore(seeds, "q", max_depth=1)

        assert result.levels[0].candidates == 2
        assert result.new_papers == 1
        assert len(await store.list_for_query("q")) == 3

    async def test_existing_store_record_is_reused(self, store, make_adapter):
        existing = await store.upsert(Paper(title="Old", source="scopus", doi="10.1/old"))
        fetched = Paper(title="Old", source="crossref", doi="10.1/OLD", abstract="new abstract")
        explorer = make_explorer(store, [make_adapter("crossref", lookup={"10.1/old": fetched})])
        seeds = await seed(store, "q", Paper(title="S", source="openalex", references=["10.1/old"]))

        result = await explorer.explore(seeds, "q", max_depth=1)

        assert result.papers[0].id == existing.id
        assert (await store.find_by_id(existing.id)).abstract == "new abstract"

    async def test_cancellation_between_fetches(self, store, make_adapter):
        token = CancellationToken()
        a = Paper(title="A", source="crossref", doi="10.1/a")

        def lookup(identifier):
            token.cancel("user aborted")
            return a

        adapter = make_adapter("crossref")
        adapter.get_by_external_id.side_effect = lookup
        explorer = make_explorer(store, [adapter])
        seeds = await seed(store, "q", Paper(title="S", source="openalex", references=["10.1/a", "10.1/b"]))

        with pytest.raises(CrawlCancelledError) as exc_info:
            await explorer.explore(seeds, "q", max_depth=2, token=token)

        assert exc_info.value.phase == "reference_expansion"
        assert adapter.get_by_external_id.await_count == 1
