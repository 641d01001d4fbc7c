"""
Screening Gate - Cheap relevance check before full analysis.

The judgment itself is delegated to a language model. Any failure of the
model call or of parsing its answer yields "should analyze" (fail-open),
so a paper is never dropped because the screen broke.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from paper_crawler.application.screening.prompts import build_screening_prompt, extract_json_object
from paper_crawler.core.exceptions import ParseError
from paper_crawler.models import ScreeningDecision

if TYPE_CHECKING:
    from paper_crawler.models import Paper

logger = logging.getLogger(__name__)

FAIL_OPEN_REASON = "Screening failed, defaulting to analyze"


@runtime_checkable
class LanguageModel(Protocol):
    """Text-in, text-out generative model."""

    async def generate(self, prompt: str) -> str: ...


class ScreeningGate:
    """
    Decide per paper whether full analysis is warranted.

    Usage:
        gate = ScreeningGate(model, context="LLM evaluation benchmarks")
        decision = await gate.screen(paper)
        if decision.should_analyze:
            ...
    """

    def __init__(self, model: LanguageModel, context: str = "") -> None:
        self._model = model
        self.context = context

    async def screen(self, paper: Paper) -> ScreeningDecision:
        try:
            response = await self._model.generate(build_screening_prompt(paper, self.context))
            return self.parse_decision(response)
        except ParseError as e:
            logger.warning(f"Unparseable screening response for {paper.id}: {e}")
        except Exception as e:
            logger.warning(f"Quick screen failed for paper {paper.id}: {e}")
        return ScreeningDecision(should_analyze=True, reason=FAIL_OPEN_REASON)

    @staticmethod
    def parse_decision(response: str) -> ScreeningDecision:
        data = extract_json_object(response, source="screening")
        should_analyze = data.get("shouldAnalyze")
        if not isinstance(should_analyze, bool):
            raise ParseError("missing boolean 'shouldAnalyze'", source="screening")
        return ScreeningDecision(should_analyze=should_analyze, reason=str(data.get("reason") or ""))
