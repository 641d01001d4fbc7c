"""
Pytest configuration and shared fixtures.
"""

from __future__ import annotations

import itertools
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from paper_crawler.core.async_utils import reset_rate_limiters
from paper_crawler.infrastructure.sources.base_client import Capability, SearchResult
from paper_crawler.infrastructure.store import InMemoryPaperStore
from paper_crawler.models import Author, Paper, SearchQuery

# ============================================================
# Environment Fixtures
# ============================================================


@pytest.fixture(autouse=True)
def _fresh_rate_limiters():
    """Each test gets its own per-provider token buckets."""
    reset_rate_limiters()
    yield
    reset_rate_limiters()


@pytest.fixture
def store():
    """Empty in-memory paper store."""
    return InMemoryPaperStore()


@pytest.fixture
def query():
    return SearchQuery(keywords=["quantum", "computing"])


# ============================================================
# Paper Factory
# ============================================================


@pytest.fixture
def make_paper():
    """Build Papers with sensible defaults; titles are unique unless given."""
    counter = itertools.count(1)

    def _make(title: str | None = None, source: str = "openalex", **kwargs) -> Paper:
        n = next(counter)
        kwargs.setdefault("authors", [Author(name=f"Author {n}")])
        return Paper(title=title or f"Paper number {n}", source=source, **kwargs)

    return _make


# ============================================================
# HTTP Fakes
# ============================================================


@pytest.fixture
def mock_response():
    """Build a MagicMock shaped like httpx.Response."""

    def _make(status_code: int = 200, json_data=None, headers: dict | None = None):
        response = MagicMock(spec=httpx.Response)
        response.status_code = status_code
        response.headers = headers or {}
        if isinstance(json_data, Exception):
            response.json.side_effect = json_data
        else:
            response.json.return_value = json_data if json_data is not None else {}
        return response

    return _make


# ============================================================
# Adapter Stubs
# ============================================================


class StubAdapter:
    """In-memory stand-in for a source adapter."""

    def __init__(
        self,
        source_name: str,
        papers: list[Paper] | None = None,
        error: Exception | None = None,
        lookup: dict[str, Paper] | None = None,
        capabilities: frozenset[Capability] | None = None,
        accepts=None,
    ) -> None:
        self.source_name = source_name
        self.capabilities = capabilities or frozenset({Capability.SEARCH, Capability.GET_BY_EXTERNAL_ID})
        self._lookup = lookup or {}
        self._accepts = accepts or (lambda identifier: True)
        if error is not None:
            self.search = AsyncMock(side_effect=error)
        else:
            self.search = AsyncMock(
                return_value=SearchResult(papers=list(papers or []), total_results=len(papers or []), source=source_name)
            )
        self.get_by_external_id = AsyncMock(side_effect=lambda identifier: self._lookup.get(identifier))

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def accepts_identifier(self, identifier: str) -> bool:
        return self._accepts(identifier)


@pytest.fixture
def make_adapter():
    return StubAdapter
