"""
Crawler configuration.

Settings come from environment variables (`CrawlerSettings.from_env()`) or
a YAML file (`CrawlerSettings.from_yaml(path)`); keyword overrides win over
both. Invalid values raise ConfigurationError at construction time.

Environment variables:
    SCOPUS_API_KEY                Scopus is disabled when unset
    SEMANTIC_SCHOLAR_API_KEY
    CRAWLER_CONTACT_EMAIL         polite-pool contact for OpenAlex/CrossRef
    RESEARCH_CONTEXT              topic description used when screening and analyzing
    DATABASE_URL                  SQLAlchemy URL
    MAX_PAPERS_PER_SEARCH, MAX_REFERENCE_DEPTH, REQUEST_TIMEOUT
    SCOPUS_RATE_LIMIT, SEMANTIC_SCHOLAR_RATE_LIMIT, OPENALEX_RATE_LIMIT, CROSSREF_RATE_LIMIT
    MAX_RETRIES, DEFAULT_RETRY_AFTER, REFERENCE_FETCH_DELAY
    SOURCE_PRIORITY               comma list, merge precedence and call order
"""

from __future__ import annotations

import dataclasses
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from paper_crawler.core.exceptions import ConfigurationError
from paper_crawler.models import PaperSource

logger = logging.getLogger(__name__)

SOURCE_NAMES: tuple[str, ...] = tuple(s.value for s in PaperSource)

DEFAULT_RATE_LIMITS: dict[str, float] = {
    PaperSource.SCOPUS.value: 2.0,
    PaperSource.SEMANTIC_SCHOLAR.value: 10.0,
    PaperSource.OPENALEX.value: 10.0,
    PaperSource.CROSSREF.value: 50.0,
}

_POSITIVE_INTS = (
    "max_papers_per_search",
    "references_per_paper",
    "max_references_per_level",
    "analysis_batch_size",
)
_NON_NEGATIVE_INTS = ("max_reference_depth", "max_retries")
_NON_NEGATIVE_FLOATS = ("default_retry_after", "reference_fetch_delay", "analysis_batch_delay")


@dataclass
class CrawlerSettings:
    """All tunables for one crawler process."""

    scopus_api_key: str | None = None
    semantic_scholar_api_key: str | None = None
    contact_email: str = "paper-crawler@example.com"
    database_url: str = "sqlite:///./data/papers.db"
    max_papers_per_search: int = 100
    max_reference_depth: int = 2
    request_timeout: float = 30.0
    rate_limits: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_RATE_LIMITS))
    max_retries: int = 1
    default_retry_after: float = 5.0
    reference_fetch_delay: float = 0.1
    references_per_paper: int = 10
    max_references_per_level: int = 50
    analysis_batch_size: int = 5
    analysis_batch_delay: float = 2.0
    research_context: str = ""
    source_priority: list[str] = field(default_factory=lambda: list(SOURCE_NAMES))

    def __post_init__(self) -> None:
        self.rate_limits = {**DEFAULT_RATE_LIMITS, **(self.rate_limits or {})}
        self.validate()

    def validate(self) -> None:
        for name in _POSITIVE_INTS:
            value = getattr(self, name)
            if not isinstance(value, int) or value <= 0:
                raise ConfigurationError(f"{name} must be a positive integer", setting=name, value=value)
        for name in _NON_NEGATIVE_INTS:
            value = getattr(self, name)
            if not isinstance(value, int) or value < 0:
                raise ConfigurationError(f"{name} must be a non-negative integer", setting=name, value=value)
        for name in _NON_NEGATIVE_FLOATS:
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or value < 0:
                raise ConfigurationError(f"{name} must be >= 0", setting=name, value=value)
        if not isinstance(self.request_timeout, (int, float)) or self.request_timeout <= 0:
            raise ConfigurationError("request_timeout must be > 0", setting="request_timeout", value=self.request_timeout)

        for source, rate in self.rate_limits.items():
            if source not in SOURCE_NAMES:
                raise ConfigurationError(f"Unknown source in rate_limits: {source}", setting="rate_limits", value=source)
            if not isinstance(rate, (int, float)) or rate <= 0:
                raise ConfigurationError(f"Rate limit for {source} must be > 0", setting="rate_limits", value=rate)

        unknown = [s for s in self.source_priority if s not in SOURCE_NAMES]
        if unknown:
            raise ConfigurationError(
                f"Unknown sources in source_priority: {', '.join(unknown)}",
                setting="source_priority",
                value=self.source_priority,
            )
        if len(set(self.source_priority)) != len(self.source_priority):
            raise ConfigurationError(
                "source_priority lists a source twice", setting="source_priority", value=self.source_priority
            )

    @property
    def enabled_sources(self) -> list[str]:
        """Sources to use, in priority order; Scopus only with an API key."""
        return [
            s for s in self.source_priority if s != PaperSource.SCOPUS.value or self.scopus_api_key
        ]

    def to_dict(self) -> dict[str, Any]:
        data = dataclasses.asdict(self)
        data["enabled_sources"] = self.enabled_sources
        return data

    # =====================================================================
    # Loaders
    # =====================================================================

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides: Any) -> CrawlerSettings:
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}

        for name, var in (
            ("scopus_api_key", "SCOPUS_API_KEY"),
            ("semantic_scholar_api_key", "SEMANTIC_SCHOLAR_API_KEY"),
            ("contact_email", "CRAWLER_CONTACT_EMAIL"),
            ("database_url", "DATABASE_URL"),
            ("research_context", "RESEARCH_CONTEXT"),
        ):
            if env.get(var):
                values[name] = env[var]

        for name, var in (
            ("max_papers_per_search", "MAX_PAPERS_PER_SEARCH"),
            ("max_reference_depth", "MAX_REFERENCE_DEPTH"),
            ("max_retries", "MAX_RETRIES"),
        ):
            if env.get(var):
                values[name] = _parse_number(int, var, env[var])

        for name, var in (
            ("request_timeout", "REQUEST_TIMEOUT"),
            ("default_retry_after", "DEFAULT_RETRY_AFTER"),
            ("reference_fetch_delay", "REFERENCE_FETCH_DELAY"),
        ):
            if env.get(var):
                values[name] = _parse_number(float, var, env[var])

        rate_limits = {}
        for source in SOURCE_NAMES:
            var = f"{source.upper()}_RATE_LIMIT"
            if env.get(var):
                rate_limits[source] = _parse_number(float, var, env[var])
        if rate_limits:
            values["rate_limits"] = rate_limits

        if env.get("SOURCE_PRIORITY"):
            values["source_priority"] = [s.strip() for s in env["SOURCE_PRIORITY"].split(",") if s.strip()]

        values.update(overrides)
        return cls(**values)

    @classmethod
    def from_yaml(cls, path: str | Path, **overrides: Any) -> CrawlerSettings:
        try:
            raw = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
        except OSError as e:
            raise ConfigurationError(f"Cannot read config file {path}: {e}", setting="path", value=str(path)) from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}", setting="path", value=str(path)) from e

        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            raise ConfigurationError("Config must be a YAML mapping", setting="path", value=str(path))

        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(raw) - known)
        if unknown:
            raise ConfigurationError(f"Unknown settings: {', '.join(unknown)}", setting=unknown[0])

        return cls(**{**raw, **overrides})


def _parse_number(kind: type, var: str, raw: str) -> Any:
    try:
        return kind(raw)
    except ValueError as e:
        raise ConfigurationError(f"{var} must be a {kind.__name__}, got {raw!r}", setting=var, value=raw) from e


def configure_logging(level: str | int = "INFO") -> None:
    """Configure root logging for applications embedding the crawler."""
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ConfigurationError(f"Unknown log level: {level}", setting="log_level", value=level)
        level = resolved
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
