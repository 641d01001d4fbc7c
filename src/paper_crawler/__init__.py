"""
Paper Crawler - Multi-source academic paper discovery

Searches several bibliographic providers at once, merges their records into
one canonical Paper per work, optionally follows citation references
breadth-first, and screens papers before deeper analysis.

Usage:
    from paper_crawler import SearchQuery, create_container

    container = create_container()
    crawler = container.crawler()
    report = await crawler.crawl(SearchQuery(keywords=["quantum", "computing"], include_references=True))

    print(report.session.status, report.session.papers_found)

Features:
    - Scopus, Semantic Scholar, OpenAlex and CrossRef adapters
    - Partial-failure tolerant fan-out search
    - DOI/title identity merge with store reconciliation
    - Bounded reference expansion with cycle safety
    - Fail-open screening and structured analysis via any text model
"""

from .application.crawl import CrawlReport, PaperCrawler
from .config import CrawlerSettings, configure_logging
from .container import ApplicationContainer, create_container
from .core import CancellationToken, PaperCrawlerError
from .models import Author, CrawlSession, Paper, PaperAnalysis, SearchQuery

__version__ = "0.1.0"

__all__ = [
    # Entry points
    "PaperCrawler",
    "CrawlReport",
    "ApplicationContainer",
    "create_container",
    "CrawlerSettings",
    "configure_logging",
    "CancellationToken",
    "PaperCrawlerError",
    # Models
    "Paper",
    "Author",
    "SearchQuery",
    "CrawlSession",
    "PaperAnalysis",
]
