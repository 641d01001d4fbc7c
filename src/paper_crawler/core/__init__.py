"""
Core module for Paper Crawler.

Provides:
- Unified exception hierarchy
- Async utilities for rate-limited, cancellable provider calls
"""

from .async_utils import (
    CancellationToken,
    KeyedLock,
    RateLimiter,
    gather_settled,
    get_rate_limiter,
    reset_rate_limiters,
)
from .exceptions import (
    AdapterError,
    AdapterTimeoutError,
    ConfigurationError,
    CrawlCancelledError,
    CrawlError,
    DataError,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
    PaperCrawlerError,
    ParseError,
    PersistenceError,
    RateLimitError,
    ReferenceResolutionError,
    UnsupportedCapabilityError,
    is_retryable_error,
)

__all__ = [
    # Exceptions
    "PaperCrawlerError",
    "ErrorContext",
    "ErrorSeverity",
    "ErrorCategory",
    "AdapterError",
    "RateLimitError",
    "AdapterTimeoutError",
    "UnsupportedCapabilityError",
    "DataError",
    "ParseError",
    "ReferenceResolutionError",
    "PersistenceError",
    "CrawlError",
    "CrawlCancelledError",
    "ConfigurationError",
    "is_retryable_error",
    # Async utilities
    "RateLimiter",
    "get_rate_limiter",
    "reset_rate_limiters",
    "gather_settled",
    "KeyedLock",
    "CancellationToken",
]
