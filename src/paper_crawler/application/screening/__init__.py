"""
Screening application layer.

- gate: fail-open relevance screen before analysis
- analyzer: structured per-paper analysis and collection summary
- prompts: prompt templates and response JSON extraction
"""

from .analyzer import SUMMARY_FAILED, PaperAnalyzer
from .gate import FAIL_OPEN_REASON, LanguageModel, ScreeningGate
from .prompts import build_analysis_prompt, build_screening_prompt, extract_json_object

__all__ = [
    "LanguageModel",
    "ScreeningGate",
    "FAIL_OPEN_REASON",
    "PaperAnalyzer",
    "SUMMARY_FAILED",
    "build_analysis_prompt",
    "build_screening_prompt",
    "extract_json_object",
]
