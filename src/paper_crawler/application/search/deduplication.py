"""
Deduplication - Collapse multi-source results into one Paper per identity.

Two steps:
1. PaperDeduplicator: in-memory, per run. Walks papers in encounter order;
   the first paper seen under an identity key becomes the record for that
   key and later ones are merged into it (Paper.merge_from).
2. PaperReconciler: against the store, once per paper when committing it
   to a query's result set. Looks up by DOI, then by normalized title, and
   merges the fetched data into the persisted record.

Both steps use the same identity rule (case-folded DOI, else normalized
title), so a record deduplicated in memory is also found in the store.

Example:
    >>> dedup = PaperDeduplicator()
    >>> unique = dedup.deduplicate(scopus_papers + s2_papers)
    >>> dedup.last_stats.duplicates_removed
    3
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from paper_crawler.core.async_utils import KeyedLock
from paper_crawler.models import utcnow

if TYPE_CHECKING:
    from paper_crawler.infrastructure.store import PaperStore
    from paper_crawler.models import Paper

logger = logging.getLogger(__name__)


@dataclass
class DeduplicationStats:
    """Statistics from one deduplication pass."""

    total_input: int = 0
    unique_papers: int = 0
    duplicates_removed: int = 0
    by_source: dict[str, int] = field(default_factory=dict)
    dedup_by_doi: int = 0
    dedup_by_title: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total_input": self.total_input,
            "unique_papers": self.unique_papers,
            "duplicates_removed": self.duplicates_removed,
            "by_source": self.by_source,
            "dedup_by_doi": self.dedup_by_doi,
            "dedup_by_title": self.dedup_by_title,
        }


class PaperDeduplicator:
    """
    Identity-keyed deduplication with field-level merge.

    Conflicting non-empty scalar values resolve to the first paper seen, so
    callers control precedence through input order.
    """

    def __init__(self) -> None:
        self.last_stats = DeduplicationStats()

    def deduplicate(self, papers: list[Paper]) -> list[Paper]:
        """
        Return one merged Paper per identity key, in first-seen order.

        Input papers are not mutated; the returned records are copies.
        """
        stats = DeduplicationStats(total_input=len(papers))
        by_key: dict[str, Paper] = {}

        for paper in papers:
            stats.by_source[paper.source] = stats.by_source.get(paper.source, 0) + 1
            existing = by_key.get(paper.identity)
            if existing is None:
                by_key[paper.identity] = copy.deepcopy(paper)
                continue

            existing.merge_from(paper)
            if paper.identity.startswith("doi:"):
                stats.dedup_by_doi += 1
            else:
                stats.dedup_by_title += 1

        stats.unique_papers = len(by_key)
        stats.duplicates_removed = stats.total_input - stats.unique_papers
        self.last_stats = stats
        return list(by_key.values())


def deduplicate_papers(papers: list[Paper]) -> list[Paper]:
    """Convenience wrapper around PaperDeduplicator."""
    return PaperDeduplicator().deduplicate(papers)


class PaperReconciler:
    """
    Commit fetched papers against the store without creating duplicates.

    Reconciliation of one identity key is serialized with a per-key lock;
    different keys proceed concurrently.
    """

    def __init__(self, store: PaperStore, locks: KeyedLock | None = None) -> None:
        self._store = store
        self._locks = locks or KeyedLock()

    async def find_existing(self, paper: Paper) -> Paper | None:
        """Persisted record with the same identity: by DOI, then by title."""
        if paper.doi:
            existing = await self._store.find_by_doi(paper.doi)
            if existing is not None:
                return existing

        candidate = await self._store.find_by_title(paper.title)
        if candidate is not None and candidate.identity == paper.identity:
            return candidate
        return None

    async def reconcile(self, paper: Paper) -> Paper:
        """
        Merge into the persisted record if one exists, else insert.

        Returns the stored record, whose id is the one to link against.
        """
        async with self._locks.hold(paper.identity):
            existing = await self.find_existing(paper)
            if existing is None:
                logger.debug(f"New paper {paper.identity}")
                return await self._store.upsert(paper)

            existing.merge_from(paper)
            existing.last_updated = utcnow()
            logger.debug(f"Merged into existing paper {existing.id} ({existing.identity})")
            return await self._store.upsert(existing)
