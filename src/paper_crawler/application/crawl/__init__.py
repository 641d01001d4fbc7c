"""
Crawl application layer.

- orchestrator: PaperCrawler, runs a query through every phase
- reference_explorer: breadth-first reference expansion
- session_tracker: CrawlSession lifecycle
"""

from .orchestrator import CrawlReport, PaperCrawler
from .reference_explorer import ExplorationResult, LevelReport, ReferenceExplorer
from .session_tracker import SessionTracker

__all__ = [
    "PaperCrawler",
    "CrawlReport",
    "ReferenceExplorer",
    "ExplorationResult",
    "LevelReport",
    "SessionTracker",
]
