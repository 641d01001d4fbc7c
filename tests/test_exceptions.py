"""Tests for the crawler exception hierarchy."""

from __future__ import annotations

import pytest

from paper_crawler.core.exceptions import (
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

# ============================================================
# Hierarchy
# ============================================================


class TestHierarchy:
    @pytest.mark.parametrize(
        ("error", "parent"),
        [
            (AdapterError("openalex", "boom"), PaperCrawlerError),
            (RateLimitError("scopus"), AdapterError),
            (AdapterTimeoutError("crossref", 30.0), AdapterError),
            (ParseError("bad"), DataError),
            (ReferenceResolutionError("10.1/x"), DataError),
            (CrawlCancelledError(), CrawlError),
            (PersistenceError("disk full"), PaperCrawlerError),
            (ConfigurationError("bad value"), PaperCrawlerError),
        ],
    )
    def test_subclassing(self, error, parent):
        assert isinstance(error, parent)

    def test_unsupported_capability_is_not_adapter_failure(self):
        error = UnsupportedCapabilityError("crossref", "get_references")
        assert not isinstance(error, AdapterError)
        assert error.capability == "get_references"
        assert "crossref" in str(error)


# ============================================================
# Adapter Errors
# ============================================================


class TestAdapterErrors:
    def test_adapter_error_carries_provider(self):
        error = AdapterError("semantic_scholar", "HTTP error 500", operation="search")
        assert error.provider == "semantic_scholar"
        assert str(error) == "semantic_scholar: HTTP error 500"
        assert error.context.provider == "semantic_scholar"
        assert error.context.operation == "search"
        assert error.category is ErrorCategory.SOURCE

    def test_rate_limit_error_is_transient(self):
        error = RateLimitError("scopus", retry_after=7.5)
        assert error.severity is ErrorSeverity.TRANSIENT
        assert error.context.retry_after == 7.5
        assert error.retryable

    def test_timeout_records_timeout(self):
        error = AdapterTimeoutError("openalex", 12.0)
        assert "12.0s" in str(error)
        assert error.context.metadata["timeout"] == 12.0


# ============================================================
# Serialization
# ============================================================


class TestToDict:
    def test_includes_context_fields(self):
        error = RateLimitError("scopus", retry_after=3.0, operation="search")
        data = error.to_dict()
        assert data["provider"] == "scopus"
        assert data["operation"] == "search"
        assert data["retry_after_seconds"] == 3.0
        assert data["category"] == "source"
        assert data["severity"] == "transient"

    def test_omits_empty_context(self):
        data = PaperCrawlerError("plain").to_dict()
        assert data == {"error": "plain", "category": "crawl", "severity": "error", "retryable": False}

    def test_context_is_frozen(self):
        ctx = ErrorContext(provider="x")
        with pytest.raises(AttributeError):
            ctx.provider = "y"  # type: ignore[misc]


# ============================================================
# Retry classification
# ============================================================


class TestIsRetryable:
    def test_crawler_errors_use_flag(self):
        assert is_retryable_error(AdapterError("x", "y"))
        assert not is_retryable_error(PersistenceError("z"))

    def test_foreign_errors_match_patterns(self):
        assert is_retryable_error(RuntimeError("Service Unavailable"))
        assert is_retryable_error(OSError("connection reset by peer"))
        assert not is_retryable_error(ValueError("bad input"))

    def test_cancelled_error_records_phase(self):
        error = CrawlCancelledError("user aborted", phase="reference_expansion")
        assert error.phase == "reference_expansion"
        assert str(error) == "user aborted"
