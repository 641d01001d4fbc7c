"""
Paper - Canonical Record Model for Multi-Source Crawling

This module defines the canonical data structures shared by every source
adapter, the deduplication engine and the persistent store:

    Paper            one academic work, normalized from any provider
    SearchQuery      a research request and its lifecycle status
    CrawlSession     one execution of a SearchQuery
    PaperQueryLink   (paper, query, depth) association

Architecture Decision:
    Plain dataclasses, like the rest of the domain layer. Provider quirks
    never reach these types; adapters resolve them in their mapping step.

Identity:
    Every Paper carries exactly one identity key, fixed at creation:
    ``doi:<lower-cased DOI>`` when a DOI is known, otherwise
    ``title:<normalized title>``. Two papers are merged only when their
    identity keys are equal.

Example:
    >>> paper = Paper(title="Deep Learning, 2020!", source="openalex")
    >>> paper.identity
    'title:deep learning 2020'
    >>> Paper(title="x", source="crossref", doi="10.1/ABC").identity
    'doi:10.1/abc'
"""

from __future__ import annotations

import dataclasses
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

DOI_PREFIXES = ("https://doi.org/", "http://doi.org/", "https://dx.doi.org/", "http://dx.doi.org/", "doi:")


class PaperSource(str, Enum):
    """Bibliographic providers a Paper can originate from."""

    SCOPUS = "scopus"
    SEMANTIC_SCHOLAR = "semantic_scholar"
    OPENALEX = "openalex"
    CROSSREF = "crossref"


class QueryStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class SessionStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        return datetime.fromisoformat(value)
    return utcnow()


def normalize_doi(doi: str) -> str:
    """Strip resolver prefixes and whitespace, lower-case for comparison."""
    doi = doi.strip()
    lowered = doi.lower()
    for prefix in DOI_PREFIXES:
        if lowered.startswith(prefix):
            doi = doi[len(prefix) :]
            break
    return doi.lower()


def strip_doi_prefix(doi: str | None) -> str | None:
    """Remove a resolver URL prefix but keep the DOI's original case."""
    if not doi:
        return None
    doi = doi.strip()
    lowered = doi.lower()
    for prefix in DOI_PREFIXES:
        if lowered.startswith(prefix):
            return doi[len(prefix) :] or None
    return doi


def normalize_title(title: str) -> str:
    """Normalize title for comparison."""
    if not title:
        return ""

    title = title.lower()
    title = re.sub(r"[^\w\s]", "", title)
    title = re.sub(r"\s+", " ", title).strip()

    return title


def identity_key(doi: str | None, title: str) -> str:
    """Deduplication key: case-folded DOI when known, else normalized title."""
    if doi and doi.strip():
        return f"doi:{normalize_doi(doi)}"
    return f"title:{normalize_title(title)}"


@dataclass
class Author:
    """Author with optional affiliation and ORCID."""

    name: str
    affiliation: str | None = None
    orcid: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "affiliation": self.affiliation, "orcid": self.orcid}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | str) -> Author:
        if isinstance(data, str):
            return cls(name=data)
        return cls(
            name=data.get("name") or "Unknown",
            affiliation=data.get("affiliation"),
            orcid=data.get("orcid"),
        )


@dataclass
class Paper:
    """
    Canonical record for one academic work.

    Merge policy (see merge_from):
    - Scalar optional fields fill only when currently empty
    - Source-specific IDs accumulate, never overwritten
    - Metrics only grow (maximum wins)
    - Keywords and references are unioned, first-seen order kept
    """

    # === Core Identity ===
    title: str
    source: str  # Provider that produced this record

    # === Identifiers ===
    doi: str | None = None
    external_ids: dict[str, str] = field(default_factory=dict)

    # === Bibliographic ===
    authors: list[Author] = field(default_factory=list)
    abstract: str | None = None
    keywords: list[str] = field(default_factory=list)
    publication_date: str | None = None  # ISO date, possibly partial
    journal: str | None = None
    volume: str | None = None
    issue: str | None = None
    pages: str | None = None
    publisher: str | None = None

    # === Metrics ===
    citation_count: int = 0
    reference_count: int = 0
    influential_citation_count: int | None = None

    # === Links ===
    pdf_url: str | None = None
    open_access_url: str | None = None
    publisher_url: str | None = None

    # === Citation edges (DOIs or provider IDs, resolved lazily) ===
    references: list[str] = field(default_factory=list)

    # === Provenance ===
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    discovered_at: datetime = field(default_factory=utcnow)
    last_updated: datetime = field(default_factory=utcnow)
    identity: str = ""

    def __post_init__(self) -> None:
        self.doi = strip_doi_prefix(self.doi)
        if not self.identity:
            self.identity = identity_key(self.doi, self.title)

    # ===================================================================
    # Properties
    # ===================================================================

    @property
    def normalized_title(self) -> str:
        return normalize_title(self.title)

    @property
    def scopus_id(self) -> str | None:
        return self.external_ids.get(PaperSource.SCOPUS.value)

    @property
    def semantic_scholar_id(self) -> str | None:
        return self.external_ids.get(PaperSource.SEMANTIC_SCHOLAR.value)

    @property
    def openalex_id(self) -> str | None:
        return self.external_ids.get(PaperSource.OPENALEX.value)

    @property
    def author_string(self) -> str:
        """Return formatted author string for display."""
        if not self.authors:
            return "Unknown"
        names = [a.name for a in self.authors[:3]]
        result = ", ".join(names)
        if len(self.authors) > 3:
            result += " et al."
        return result

    # ===================================================================
    # Merge
    # ===================================================================

    def merge_from(self, other: Paper) -> None:
        """
        Merge another record of the same work into this one.

        Only papers with equal identity keys may be merged. No field is
        ever cleared or reduced.

        Raises:
            ValueError: if the identity keys differ
        """
        if other.identity != self.identity:
            msg = f"Cannot merge {other.identity!r} into {self.identity!r}"
            raise ValueError(msg)
        if other is self:
            return

        # Identifiers (fill missing, never overwrite)
        if not self.doi and other.doi:
            self.doi = other.doi
        for source, external_id in other.external_ids.items():
            if external_id and not self.external_ids.get(source):
                self.external_ids[source] = external_id

        # Bibliographic (fill missing)
        if not self.abstract and other.abstract:
            self.abstract = other.abstract
        if not self.authors and other.authors:
            self.authors = list(other.authors)
        if not self.publication_date and other.publication_date:
            self.publication_date = other.publication_date
        if not self.journal and other.journal:
            self.journal = other.journal
        if not self.volume and other.volume:
            self.volume = other.volume
        if not self.issue and other.issue:
            self.issue = other.issue
        if not self.pages and other.pages:
            self.pages = other.pages
        if not self.publisher and other.publisher:
            self.publisher = other.publisher

        # Links (fill missing)
        if not self.pdf_url and other.pdf_url:
            self.pdf_url = other.pdf_url
        if not self.open_access_url and other.open_access_url:
            self.open_access_url = other.open_access_url
        if not self.publisher_url and other.publisher_url:
            self.publisher_url = other.publisher_url

        # Metrics (monotonically non-decreasing)
        self.citation_count = max(self.citation_count, other.citation_count)
        self.reference_count = max(self.reference_count, other.reference_count)
        if other.influential_citation_count is not None:
            self.influential_citation_count = max(
                self.influential_citation_count or 0, other.influential_citation_count
            )

        # Set-like unions
        _union_into(self.keywords, other.keywords)
        _union_into(self.references, other.references)

    # ===================================================================
    # Serialization
    # ===================================================================

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "identity": self.identity,
            "title": self.title,
            "source": self.source,
            "doi": self.doi,
            "external_ids": dict(self.external_ids),
            "authors": [a.to_dict() for a in self.authors],
            "abstract": self.abstract,
            "keywords": list(self.keywords),
            "publication_date": self.publication_date,
            "journal": self.journal,
            "volume": self.volume,
            "issue": self.issue,
            "pages": self.pages,
            "publisher": self.publisher,
            "citation_count": self.citation_count,
            "reference_count": self.reference_count,
            "influential_citation_count": self.influential_citation_count,
            "pdf_url": self.pdf_url,
            "open_access_url": self.open_access_url,
            "publisher_url": self.publisher_url,
            "references": list(self.references),
            "discovered_at": self.discovered_at.isoformat(),
            "last_updated": self.last_updated.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Paper:
        return cls(
            id=data.get("id") or str(uuid.uuid4()),
            identity=data.get("identity", ""),
            title=data.get("title") or "Untitled",
            source=data.get("source", ""),
            doi=data.get("doi"),
            external_ids=dict(data.get("external_ids") or {}),
            authors=[Author.from_dict(a) for a in data.get("authors") or []],
            abstract=data.get("abstract"),
            keywords=list(data.get("keywords") or []),
            publication_date=data.get("publication_date"),
            journal=data.get("journal"),
            volume=data.get("volume"),
            issue=data.get("issue"),
            pages=data.get("pages"),
            publisher=data.get("publisher"),
            citation_count=int(data.get("citation_count") or 0),
            reference_count=int(data.get("reference_count") or 0),
            influential_citation_count=data.get("influential_citation_count"),
            pdf_url=data.get("pdf_url"),
            open_access_url=data.get("open_access_url"),
            publisher_url=data.get("publisher_url"),
            references=list(data.get("references") or []),
            discovered_at=_parse_datetime(data.get("discovered_at")),
            last_updated=_parse_datetime(data.get("last_updated")),
        )


def _union_into(target: list[str], incoming: list[str]) -> None:
    seen = set(target)
    for item in incoming:
        if item and item not in seen:
            target.append(item)
            seen.add(item)


@dataclass
class SearchQuery:
    """
    A research request.

    Created once and mutated only by the crawl orchestrator as the run
    progresses (status, paper_count).
    """

    keywords: list[str]
    field: str | None = None  # Subject area code, e.g. "COMP"
    date_from: str | None = None  # YYYY-MM-DD
    date_to: str | None = None
    min_citations: int | None = None
    include_references: bool = False
    max_reference_depth: int = 2
    id: str = dataclasses.field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = dataclasses.field(default_factory=utcnow)
    status: QueryStatus = QueryStatus.PENDING
    paper_count: int = 0

    @property
    def keyword_query(self) -> str:
        return " ".join(self.keywords)

    @property
    def year_from(self) -> int | None:
        return int(self.date_from[:4]) if self.date_from else None

    @property
    def year_to(self) -> int | None:
        return int(self.date_to[:4]) if self.date_to else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "keywords": list(self.keywords),
            "field": self.field,
            "date_from": self.date_from,
            "date_to": self.date_to,
            "min_citations": self.min_citations,
            "include_references": self.include_references,
            "max_reference_depth": self.max_reference_depth,
            "created_at": self.created_at.isoformat(),
            "status": self.status.value,
            "paper_count": self.paper_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SearchQuery:
        return cls(
            id=data["id"],
            keywords=list(data.get("keywords") or []),
            field=data.get("field"),
            date_from=data.get("date_from"),
            date_to=data.get("date_to"),
            min_citations=data.get("min_citations"),
            include_references=bool(data.get("include_references")),
            max_reference_depth=int(data.get("max_reference_depth", 2)),
            created_at=_parse_datetime(data.get("created_at")),
            status=QueryStatus(data.get("status", QueryStatus.PENDING.value)),
            paper_count=int(data.get("paper_count") or 0),
        )


@dataclass
class CrawlSession:
    """One execution of a SearchQuery. Terminal states are final."""

    query_id: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: SessionStatus = SessionStatus.RUNNING
    papers_found: int = 0
    papers_analyzed: int = 0
    errors: list[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=utcnow)
    completed_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (SessionStatus.COMPLETED, SessionStatus.FAILED)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "query_id": self.query_id,
            "status": self.status.value,
            "papers_found": self.papers_found,
            "papers_analyzed": self.papers_analyzed,
            "errors": list(self.errors),
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CrawlSession:
        completed = data.get("completed_at")
        return cls(
            id=data["id"],
            query_id=data["query_id"],
            status=SessionStatus(data.get("status", SessionStatus.RUNNING.value)),
            papers_found=int(data.get("papers_found") or 0),
            papers_analyzed=int(data.get("papers_analyzed") or 0),
            errors=list(data.get("errors") or []),
            started_at=_parse_datetime(data.get("started_at")),
            completed_at=_parse_datetime(completed) if completed else None,
        )


@dataclass(frozen=True)
class PaperQueryLink:
    """Association of a paper with a query; depth is the BFS level of first discovery."""

    paper_id: str
    query_id: str
    depth: int = 0
