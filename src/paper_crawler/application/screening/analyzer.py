"""
Paper Analyzer - Structured full analysis and collection synthesis.

Failures never propagate: a model error or an unparseable answer yields
the conservative default analysis (maybe_read, manual review recommended),
and a failed collection summary yields a fixed message.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from paper_crawler.application.screening.prompts import (
    build_analysis_prompt,
    build_summary_prompt,
    extract_json_object,
)
from paper_crawler.core.exceptions import ParseError
from paper_crawler.models import (
    PaperAnalysis,
    ReadingDecision,
    SuggestedAction,
    clamp_score,
)

if TYPE_CHECKING:
    from paper_crawler.application.screening.gate import LanguageModel
    from paper_crawler.models import Paper

logger = logging.getLogger(__name__)

SUMMARY_FAILED = "Summary generation failed."
SUMMARY_TOP_N = 10


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if v]


class PaperAnalyzer:
    """
    Full analysis through a language model.

    Usage:
        analyzer = PaperAnalyzer(model, context="protein folding")
        analyses = await analyzer.batch_analyze(papers)
        summary = await analyzer.summarize_collection(papers, analyses)
    """

    def __init__(
        self,
        model: LanguageModel,
        context: str = "",
        batch_size: int = 5,
        batch_delay: float = 2.0,
    ) -> None:
        self._model = model
        self.context = context
        self._batch_size = max(1, batch_size)
        self._batch_delay = batch_delay

    async def analyze(self, paper: Paper) -> PaperAnalysis:
        try:
            response = await self._model.generate(build_analysis_prompt(paper, self.context))
        except Exception as e:
            logger.warning(f"Failed to analyze paper {paper.id}: {e}")
            return PaperAnalysis.default(paper.id)

        try:
            return self.parse_analysis(response, paper.id)
        except ParseError as e:
            logger.warning(f"Failed to parse analysis response for {paper.id}: {e}")
            return PaperAnalysis.default(paper.id)

    @staticmethod
    def parse_analysis(response: str, paper_id: str) -> PaperAnalysis:
        """
        Map the model's JSON answer onto PaperAnalysis.

        Scores are clamped to [0, 1]; unknown suggested actions are dropped.

        Raises:
            ParseError: no usable JSON object in the response
        """
        data = extract_json_object(response, source="analysis")
        if "readingDecision" not in data:
            raise ParseError("missing 'readingDecision'", source="analysis")

        actions = []
        for value in _string_list(data.get("suggestedActions")):
            try:
                actions.append(SuggestedAction(value))
            except ValueError:
                continue

        methodology = data.get("methodology")
        return PaperAnalysis(
            paper_id=paper_id,
            reading_decision=ReadingDecision.parse(data.get("readingDecision")),
            reading_reason=str(data.get("readingReason") or ""),
            confidence_score=clamp_score(data.get("confidenceScore"), 0.0),
            abstract_summary=str(data.get("abstractSummary") or ""),
            key_findings=_string_list(data.get("keyFindings")),
            methodology=str(methodology) if methodology else None,
            limitations=_string_list(data.get("limitations")),
            relevance_score=clamp_score(data.get("relevanceScore")),
            relevance_topics=_string_list(data.get("relevanceTopics")),
            suggested_actions=actions,
            important_references=_string_list(data.get("importantReferences")),
        )

    async def batch_analyze(self, papers: list[Paper]) -> list[PaperAnalysis]:
        """Analyze in concurrent batches, pausing between batches; order matches input."""
        analyses: list[PaperAnalysis] = []
        for start in range(0, len(papers), self._batch_size):
            batch = papers[start : start + self._batch_size]
            analyses.extend(await asyncio.gather(*(self.analyze(p) for p in batch)))
            if start + self._batch_size < len(papers) and self._batch_delay:
                await asyncio.sleep(self._batch_delay)
        return analyses

    async def summarize_collection(self, papers: list[Paper], analyses: list[PaperAnalysis]) -> str:
        """Synthesize themes across the must-read and should-read papers."""
        must_read = [a for a in analyses if a.reading_decision is ReadingDecision.MUST_READ]
        should_read = [a for a in analyses if a.reading_decision is ReadingDecision.SHOULD_READ]
        by_id = {p.id: p for p in papers}
        top = [(by_id.get(a.paper_id), a) for a in (must_read + should_read)[:SUMMARY_TOP_N]]

        prompt = build_summary_prompt(top, len(analyses), len(must_read), len(should_read))
        try:
            return await self._model.generate(prompt)
        except Exception as e:
            logger.warning(f"Failed to summarize collection: {e}")
            return SUMMARY_FAILED
