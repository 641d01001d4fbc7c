"""Paper store contract and implementations."""

from .base import PaperStore, StoreStats
from .memory import InMemoryPaperStore
from .sql import SqlPaperStore

__all__ = ["PaperStore", "StoreStats", "InMemoryPaperStore", "SqlPaperStore"]
