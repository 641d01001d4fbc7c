"""
Source adapters - one client per bibliographic provider.

All adapters share BaseAPIClient's rate limiting and error policy and map
provider JSON into the canonical Paper.
"""

from .base_client import BaseAPIClient, Capability, SearchFilters, SearchResult
from .crossref import CrossRefClient
from .openalex import OpenAlexClient
from .scopus import ScopusClient
from .semantic_scholar import SemanticScholarClient

__all__ = [
    "BaseAPIClient",
    "Capability",
    "SearchFilters",
    "SearchResult",
    "ScopusClient",
    "SemanticScholarClient",
    "OpenAlexClient",
    "CrossRefClient",
]
