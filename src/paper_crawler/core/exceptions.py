"""
Unified Exception Hierarchy for Paper Crawler.

Exception Hierarchy:
    PaperCrawlerError (base)
    ├── AdapterError
    │   ├── RateLimitError
    │   └── AdapterTimeoutError
    ├── UnsupportedCapabilityError
    ├── DataError
    │   ├── ParseError
    │   └── ReferenceResolutionError
    ├── PersistenceError
    ├── CrawlError
    │   └── CrawlCancelledError
    └── ConfigurationError

Only PersistenceError and CrawlError are fatal to a crawl session. Adapter
errors degrade result completeness, data errors fall back to defaults.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum, auto
from typing import Any


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    WARNING = auto()  # Recoverable, can continue
    ERROR = auto()  # Failed but can retry
    CRITICAL = auto()  # Cannot continue
    TRANSIENT = auto()  # Temporary, should retry automatically


class ErrorCategory(Enum):
    """Categories for error classification."""

    SOURCE = "source"
    DATA = "data"
    PERSISTENCE = "persistence"
    CRAWL = "crawl"
    CONFIGURATION = "config"


@dataclass(frozen=True, slots=True)
class ErrorContext:
    """Rich context attached to every crawler error."""

    provider: str | None = None
    operation: str | None = None
    input_value: Any = None
    suggestion: str | None = None
    retry_after: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class PaperCrawlerError(Exception):
    """
    Base exception for all Paper Crawler errors.

    Provides:
    - Structured error context
    - Severity classification
    - Retry guidance
    """

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        category: ErrorCategory = ErrorCategory.CRAWL,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.context = context or ErrorContext()
        self.severity = severity
        self.category = category
        self.retryable = retryable

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "error": str(self),
            "category": self.category.value,
            "severity": self.severity.name.lower(),
            "retryable": self.retryable,
        }
        if self.context.provider:
            result["provider"] = self.context.provider
        if self.context.operation:
            result["operation"] = self.context.operation
        if self.context.suggestion:
            result["suggestion"] = self.context.suggestion
        if self.context.retry_after:
            result["retry_after_seconds"] = self.context.retry_after
        return result


# =============================================================================
# Source Adapter Errors
# =============================================================================


class AdapterError(PaperCrawlerError):
    """A single call to a bibliographic provider failed."""

    def __init__(
        self,
        provider: str,
        message: str,
        *,
        operation: str | None = None,
        context: ErrorContext | None = None,
        retryable: bool = True,
    ) -> None:
        ctx = replace(context or ErrorContext(), provider=provider)
        if operation:
            ctx = replace(ctx, operation=operation)
        super().__init__(
            f"{provider}: {message}",
            context=ctx,
            severity=ErrorSeverity.ERROR,
            category=ErrorCategory.SOURCE,
            retryable=retryable,
        )
        self.provider = provider


class RateLimitError(AdapterError):
    """Raised when a provider keeps signalling rate limiting after retries."""

    def __init__(
        self,
        provider: str,
        message: str = "rate limit exceeded",
        *,
        retry_after: float = 5.0,
        operation: str | None = None,
    ) -> None:
        ctx = ErrorContext(
            retry_after=retry_after,
            suggestion="Lower the requests-per-second setting for this source",
        )
        super().__init__(provider, message, operation=operation, context=ctx)
        self.severity = ErrorSeverity.TRANSIENT


class AdapterTimeoutError(AdapterError):
    """Raised when a provider call exceeds its timeout."""

    def __init__(
        self,
        provider: str,
        timeout: float,
        *,
        operation: str | None = None,
    ) -> None:
        super().__init__(
            provider,
            f"request timed out after {timeout:.1f}s",
            operation=operation,
            context=ErrorContext(metadata={"timeout": timeout}),
        )
        self.severity = ErrorSeverity.TRANSIENT


class UnsupportedCapabilityError(PaperCrawlerError):
    """Raised when an adapter is asked for a capability it does not offer."""

    def __init__(self, provider: str, capability: str) -> None:
        super().__init__(
            f"{provider} does not support '{capability}'",
            context=ErrorContext(provider=provider, operation=capability),
            severity=ErrorSeverity.WARNING,
            category=ErrorCategory.SOURCE,
        )
        self.provider = provider
        self.capability = capability


# =============================================================================
# Data Errors
# =============================================================================


class DataError(PaperCrawlerError):
    """Base class for data-related errors."""

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(
            message,
            context=context,
            severity=ErrorSeverity.WARNING,
            category=ErrorCategory.DATA,
            retryable=False,
        )


class ParseError(DataError):
    """Raised when a model response cannot be parsed."""

    def __init__(
        self,
        message: str,
        *,
        source: str | None = None,
        context: ErrorContext | None = None,
    ) -> None:
        full_msg = f"Parse error: {message}"
        if source:
            full_msg = f"Parse error ({source}): {message}"
        super().__init__(full_msg, context=context)


class ReferenceResolutionError(DataError):
    """Raised when a reference identifier cannot be fetched from any source."""

    def __init__(self, reference: str, reason: str = "no matching source") -> None:
        super().__init__(
            f"Cannot resolve reference {reference!r}: {reason}",
            context=ErrorContext(operation="resolve_reference", input_value=reference),
        )
        self.reference = reference


# =============================================================================
# Persistence and Crawl Errors
# =============================================================================


class PersistenceError(PaperCrawlerError):
    """Raised when the paper store fails. Always fatal to a session."""

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
    ) -> None:
        super().__init__(
            message,
            context=ErrorContext(operation=operation),
            severity=ErrorSeverity.CRITICAL,
            category=ErrorCategory.PERSISTENCE,
        )


class CrawlError(PaperCrawlerError):
    """Raised when a crawl phase fails."""

    def __init__(
        self,
        message: str,
        *,
        phase: str | None = None,
    ) -> None:
        super().__init__(
            message,
            context=ErrorContext(operation=phase),
            severity=ErrorSeverity.CRITICAL,
            category=ErrorCategory.CRAWL,
        )
        self.phase = phase


class CrawlCancelledError(CrawlError):
    """Raised when a crawl is cancelled or runs past its deadline."""

    def __init__(self, reason: str = "crawl cancelled", *, phase: str | None = None) -> None:
        super().__init__(reason, phase=phase)


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(PaperCrawlerError):
    """Raised for configuration-related errors."""

    def __init__(
        self,
        message: str,
        *,
        setting: str | None = None,
        value: Any = None,
    ) -> None:
        super().__init__(
            message,
            context=ErrorContext(operation=setting, input_value=value),
            severity=ErrorSeverity.CRITICAL,
            category=ErrorCategory.CONFIGURATION,
        )


def is_retryable_error(error: Exception) -> bool:
    """Check if an error should be retried."""
    if isinstance(error, PaperCrawlerError):
        return error.retryable

    error_str = str(error).lower()
    transient_patterns = [
        "rate limit",
        "too many requests",
        "temporarily unavailable",
        "service unavailable",
        "connection reset",
        "timeout",
    ]
    return any(pattern in error_str for pattern in transient_patterns)
