"""
Application Layer - Crawl use cases.

Contains:
- search: fan-out search, deduplication and store reconciliation
- crawl: orchestrator, reference expansion, session tracking
- screening: relevance gate and structured analysis
"""
