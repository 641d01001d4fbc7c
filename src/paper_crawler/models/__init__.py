"""Canonical data model shared by adapters, the merge engine and the store."""

from .analysis import (
    ANALYSIS_VERSION,
    PaperAnalysis,
    ReadingDecision,
    ScreeningDecision,
    SuggestedAction,
    clamp_score,
)
from .paper import (
    Author,
    CrawlSession,
    Paper,
    PaperQueryLink,
    PaperSource,
    QueryStatus,
    SearchQuery,
    SessionStatus,
    identity_key,
    normalize_doi,
    normalize_title,
    strip_doi_prefix,
    utcnow,
)

__all__ = [
    "Author",
    "Paper",
    "PaperSource",
    "SearchQuery",
    "QueryStatus",
    "CrawlSession",
    "SessionStatus",
    "PaperQueryLink",
    "identity_key",
    "normalize_doi",
    "normalize_title",
    "strip_doi_prefix",
    "utcnow",
    "ANALYSIS_VERSION",
    "PaperAnalysis",
    "ReadingDecision",
    "ScreeningDecision",
    "SuggestedAction",
    "clamp_score",
]
