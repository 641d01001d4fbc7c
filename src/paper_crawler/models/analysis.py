"""
Analysis Models - Screening decisions and structured paper analyses.

Produced by the screening layer from language-model output; persisted
alongside papers so the store can report a decision breakdown.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from .paper import _parse_datetime, utcnow

ANALYSIS_VERSION = "1.0.0"


class ReadingDecision(str, Enum):
    """How urgently a researcher should read a paper."""

    MUST_READ = "must_read"
    SHOULD_READ = "should_read"
    MAYBE_READ = "maybe_read"
    SKIP = "skip"

    @classmethod
    def parse(cls, value: Any) -> ReadingDecision:
        """Map model output onto a decision; unknown values become maybe_read."""
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.MAYBE_READ


class SuggestedAction(str, Enum):
    READ_FULL = "read_full"
    CHECK_FIGURES = "check_figures"
    FOLLOW_REFERENCES = "follow_references"
    CITE = "cite"
    ARCHIVE = "archive"


@dataclass(frozen=True)
class ScreeningDecision:
    """Outcome of the cheap pre-analysis gate."""

    should_analyze: bool
    reason: str


def clamp_score(value: Any, default: float = 0.5) -> float:
    """Coerce to float in [0, 1]."""
    try:
        score = float(value)
    except (TypeError, ValueError):
        return default
    return max(0.0, min(1.0, score))


@dataclass
class PaperAnalysis:
    """Structured full analysis of one paper."""

    paper_id: str
    reading_decision: ReadingDecision
    reading_reason: str
    confidence_score: float
    abstract_summary: str
    key_findings: list[str] = field(default_factory=list)
    methodology: str | None = None
    limitations: list[str] = field(default_factory=list)
    relevance_score: float = 0.5
    relevance_topics: list[str] = field(default_factory=list)
    suggested_actions: list[SuggestedAction] = field(default_factory=list)
    important_references: list[str] = field(default_factory=list)
    analyzed_at: datetime = field(default_factory=utcnow)
    analysis_version: str = ANALYSIS_VERSION

    @classmethod
    def default(cls, paper_id: str) -> PaperAnalysis:
        """Conservative analysis used whenever the model call or parsing fails."""
        return cls(
            paper_id=paper_id,
            reading_decision=ReadingDecision.MAYBE_READ,
            reading_reason="Analysis could not be completed. Manual review recommended.",
            confidence_score=0.0,
            abstract_summary="Analysis unavailable",
            relevance_score=0.5,
            suggested_actions=[SuggestedAction.READ_FULL],
        )

    @property
    def is_priority(self) -> bool:
        return self.reading_decision in (ReadingDecision.MUST_READ, ReadingDecision.SHOULD_READ)

    def to_dict(self) -> dict[str, Any]:
        return {
            "paper_id": self.paper_id,
            "reading_decision": self.reading_decision.value,
            "reading_reason": self.reading_reason,
            "confidence_score": self.confidence_score,
            "abstract_summary": self.abstract_summary,
            "key_findings": list(self.key_findings),
            "methodology": self.methodology,
            "limitations": list(self.limitations),
            "relevance_score": self.relevance_score,
            "relevance_topics": list(self.relevance_topics),
            "suggested_actions": [a.value for a in self.suggested_actions],
            "important_references": list(self.important_references),
            "analyzed_at": self.analyzed_at.isoformat(),
            "analysis_version": self.analysis_version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PaperAnalysis:
        actions = []
        for value in data.get("suggested_actions") or []:
            try:
                actions.append(SuggestedAction(value))
            except ValueError:
                continue
        return cls(
            paper_id=data["paper_id"],
            reading_decision=ReadingDecision.parse(data.get("reading_decision")),
            reading_reason=data.get("reading_reason") or "",
            confidence_score=clamp_score(data.get("confidence_score"), 0.0),
            abstract_summary=data.get("abstract_summary") or "",
            key_findings=list(data.get("key_findings") or []),
            methodology=data.get("methodology"),
            limitations=list(data.get("limitations") or []),
            relevance_score=clamp_score(data.get("relevance_score")),
            relevance_topics=list(data.get("relevance_topics") or []),
            suggested_actions=actions,
            important_references=list(data.get("important_references") or []),
            analyzed_at=_parse_datetime(data.get("analyzed_at")),
            analysis_version=data.get("analysis_version") or ANALYSIS_VERSION,
        )
