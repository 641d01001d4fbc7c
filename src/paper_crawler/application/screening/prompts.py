"""
Prompt templates for screening, full analysis and collection summaries.

Responses are expected as a single JSON object; `extract_json_object`
pulls the outermost {...} block out of free-form model text.
"""

from __future__ import annotations

import json
import re
from typing import TYPE_CHECKING, Any

from paper_crawler.core.exceptions import ParseError

if TYPE_CHECKING:
    from paper_crawler.models import Paper, PaperAnalysis

ABSTRACT_PREVIEW_CHARS = 500

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")

SCREENING_TEMPLATE = """\
You are a research assistant helping to quickly screen academic papers for relevance.

Research Context: {context}

Paper Information:
- Title: {title}
- Authors: {authors}
- Journal: {journal}
- Publication Date: {date}
- Citation Count: {citations}
- Keywords: {keywords}
{abstract_line}
Task: Quickly determine if this paper warrants full analysis based on:
1. Title relevance to research context
2. Citation count (higher is generally better)
3. Publication recency
4. Journal quality (if recognizable)

Respond in JSON format:
{{
  "shouldAnalyze": true/false,
  "reason": "Brief explanation of decision"
}}
"""

ANALYSIS_TEMPLATE = """\
You are an expert research analyst helping researchers efficiently evaluate academic papers.

## Research Context
{context}

## Paper Information
- **Title**: {title}
- **Authors**: {authors}
- **Journal/Venue**: {journal}
- **Publication Date**: {date}
- **Citation Count**: {citations}
- **Influential Citations**: {influential}
- **Keywords**: {keywords}

## Abstract
{abstract}

## Analysis Task
Analyze this paper and provide a structured evaluation. Consider:
1. **Relevance** to the research context
2. **Quality indicators** (journal reputation, citation count, methodology hints)
3. **Novelty** of findings based on abstract
4. **Practical value** for the researcher

## Required Output Format (JSON)
{{
  "readingDecision": "must_read" | "should_read" | "maybe_read" | "skip",
  "readingReason": "2-3 sentence explanation of the reading recommendation",
  "confidenceScore": 0.0-1.0,
  "abstractSummary": "2-3 sentence summary of the paper's main contribution",
  "keyFindings": ["finding1", "finding2", ...],
  "methodology": "Brief description of methodology if identifiable from abstract",
  "limitations": ["limitation1", ...] or null if not identifiable,
  "relevanceScore": 0.0-1.0,
  "relevanceTopics": ["topic1", "topic2", ...],
  "suggestedActions": ["read_full" | "check_figures" | "follow_references" | "cite" | "archive"],
  "importantReferences": ["DOI or description of papers to follow up on"]
}}

## Decision Guidelines
- **must_read**: Highly relevant, potentially foundational paper. High citations or novel approach.
- **should_read**: Relevant to research, worth reading but not critical.
- **maybe_read**: Tangentially related, might be useful for background.
- **skip**: Not relevant to research context or low quality indicators.

Respond ONLY with the JSON object, no additional text.
"""

SUMMARY_TEMPLATE = """\
Based on the following top-rated papers from a literature search, provide a synthesis of the key themes and findings:

## Top Papers:
{paper_lines}

## Statistics:
- Total papers analyzed: {total}
- Must-read papers: {must_read}
- Should-read papers: {should_read}

Please provide:
1. A 2-3 paragraph synthesis of the main research themes
2. Key gaps or opportunities identified
3. Recommended reading order for the must-read papers

Format the response in clear, readable paragraphs.
"""


def build_screening_prompt(paper: Paper, context: str = "") -> str:
    abstract_line = ""
    if paper.abstract:
        abstract_line = f"- Abstract Preview: {paper.abstract[:ABSTRACT_PREVIEW_CHARS]}...\n"
    return SCREENING_TEMPLATE.format(
        context=context or "General academic research",
        title=paper.title,
        authors=", ".join(a.name for a in paper.authors),
        journal=paper.journal or "Unknown",
        date=paper.publication_date or "Unknown",
        citations=paper.citation_count,
        keywords=", ".join(paper.keywords) or "None",
        abstract_line=abstract_line,
    )


def build_analysis_prompt(paper: Paper, context: str = "") -> str:
    authors = "; ".join(f"{a.name} ({a.affiliation})" if a.affiliation else a.name for a in paper.authors)
    return ANALYSIS_TEMPLATE.format(
        context=context or "Evaluate this paper for general academic research relevance.",
        title=paper.title,
        authors=authors,
        journal=paper.journal or "Unknown",
        date=paper.publication_date or "Unknown",
        citations=paper.citation_count,
        influential=paper.influential_citation_count or "N/A",
        keywords=", ".join(paper.keywords) or "None provided",
        abstract=paper.abstract or "No abstract available. Please base analysis on title and metadata only.",
    )


def build_summary_prompt(
    top: list[tuple[Paper | None, PaperAnalysis]],
    total: int,
    must_read: int,
    should_read: int,
) -> str:
    paper_lines = "\n".join(
        f'- "{paper.title if paper else analysis.paper_id}": {analysis.abstract_summary}' for paper, analysis in top
    )
    return SUMMARY_TEMPLATE.format(
        paper_lines=paper_lines,
        total=total,
        must_read=must_read,
        should_read=should_read,
    )


def extract_json_object(text: str, *, source: str | None = None) -> dict[str, Any]:
    """
    Parse the first-to-last brace block of a model response.

    Raises:
        ParseError: no JSON object found, or it does not decode to a dict
    """
    match = _JSON_BLOCK.search(text or "")
    if not match:
        raise ParseError("no JSON object in response", source=source)
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ParseError(str(e), source=source) from e
    if not isinstance(data, dict):
        raise ParseError("response JSON is not an object", source=source)
    return data
