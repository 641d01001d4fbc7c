"""
Search application layer.

- fanout: parallel search across source adapters with partial-failure tolerance
- deduplication: identity-keyed merge and store reconciliation
"""

from .deduplication import (
    DeduplicationStats,
    PaperDeduplicator,
    PaperReconciler,
    deduplicate_papers,
)
from .fanout import FanOutResult, FanOutSearcher

__all__ = [
    "DeduplicationStats",
    "PaperDeduplicator",
    "PaperReconciler",
    "deduplicate_papers",
    "FanOutResult",
    "FanOutSearcher",
]
