"""
Application DI Container (dependency-injector).

Wires settings, source adapters, the paper store and the crawl components.

Usage::

    from paper_crawler.container import create_container

    container = create_container()            # settings from environment
    container.language_model.override(providers.Object(my_model))
    crawler = container.crawler()
    report = await crawler.crawl(query)

    # In tests, override any provider:
    container.store.override(providers.Object(InMemoryPaperStore()))
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from dependency_injector import containers, providers

from paper_crawler.application.crawl import PaperCrawler, ReferenceExplorer, SessionTracker
from paper_crawler.application.screening import PaperAnalyzer, ScreeningGate
from paper_crawler.application.search import FanOutSearcher, PaperReconciler
from paper_crawler.config import CrawlerSettings
from paper_crawler.core.async_utils import KeyedLock
from paper_crawler.infrastructure.sources import (
    CrossRefClient,
    OpenAlexClient,
    ScopusClient,
    SemanticScholarClient,
)
from paper_crawler.infrastructure.store import SqlPaperStore
from paper_crawler.models import PaperSource

if TYPE_CHECKING:
    from paper_crawler.application.screening import LanguageModel
    from paper_crawler.infrastructure.sources import BaseAPIClient

logger = logging.getLogger(__name__)


def _create_adapters(
    enabled_sources: list[str],
    scopus_api_key: str | None,
    semantic_scholar_api_key: str | None,
    contact_email: str,
    request_timeout: float,
    rate_limits: dict[str, float],
    max_retries: int,
    default_retry_after: float,
) -> list[BaseAPIClient]:
    """Build adapters in priority order; order decides merge precedence."""
    common: dict[str, Any] = {
        "timeout": request_timeout,
        "max_retries": max_retries,
        "default_retry_after": default_retry_after,
    }
    adapters: list[BaseAPIClient] = []
    for source in enabled_sources:
        rate = rate_limits[source]
        if source == PaperSource.SCOPUS.value:
            adapters.append(ScopusClient(api_key=scopus_api_key or "", rate_limit=rate, **common))
        elif source == PaperSource.SEMANTIC_SCHOLAR.value:
            adapters.append(SemanticScholarClient(api_key=semantic_scholar_api_key, rate_limit=rate, **common))
        elif source == PaperSource.OPENALEX.value:
            adapters.append(OpenAlexClient(email=contact_email, rate_limit=rate, **common))
        elif source == PaperSource.CROSSREF.value:
            adapters.append(CrossRefClient(email=contact_email, rate_limit=rate, **common))
    logger.info(f"Configured sources: {', '.join(a.source_name for a in adapters)}")
    return adapters


def _create_gate(model: LanguageModel | None, context: str) -> ScreeningGate | None:
    return ScreeningGate(model, context=context) if model is not None else None


def _create_analyzer(
    model: LanguageModel | None, context: str, batch_size: int, batch_delay: float
) -> PaperAnalyzer | None:
    if model is None:
        return None
    return PaperAnalyzer(model, context=context, batch_size=batch_size, batch_delay=batch_delay)


class ApplicationContainer(containers.DeclarativeContainer):
    """Central DI container for the paper crawler.

    - ``adapters``: source clients in priority order
    - ``store``: SQL paper store
    - ``searcher`` / ``reconciler`` / ``explorer`` / ``tracker``: crawl engine
    - ``gate`` / ``analyzer``: present only when ``language_model`` is provided
    - ``crawler``: the orchestrator
    """

    config = providers.Configuration()

    language_model = providers.Object(None)

    adapters = providers.Singleton(
        _create_adapters,
        enabled_sources=config.enabled_sources,
        scopus_api_key=config.scopus_api_key,
        semantic_scholar_api_key=config.semantic_scholar_api_key,
        contact_email=config.contact_email,
        request_timeout=config.request_timeout,
        rate_limits=config.rate_limits,
        max_retries=config.max_retries,
        default_retry_after=config.default_retry_after,
    )

    store = providers.Singleton(SqlPaperStore, database_url=config.database_url)

    identity_locks = providers.Singleton(KeyedLock)

    reconciler = providers.Singleton(PaperReconciler, store=store, locks=identity_locks)

    searcher = providers.Singleton(
        FanOutSearcher,
        adapters=adapters,
        max_papers=config.max_papers_per_search,
    )

    explorer = providers.Singleton(
        ReferenceExplorer,
        adapters=adapters,
        store=store,
        reconciler=reconciler,
        references_per_paper=config.references_per_paper,
        max_references_per_level=config.max_references_per_level,
        fetch_delay=config.reference_fetch_delay,
    )

    tracker = providers.Singleton(SessionTracker, store=store)

    gate = providers.Singleton(_create_gate, model=language_model, context=config.research_context)

    analyzer = providers.Singleton(
        _create_analyzer,
        model=language_model,
        context=config.research_context,
        batch_size=config.analysis_batch_size,
        batch_delay=config.analysis_batch_delay,
    )

    crawler = providers.Singleton(
        PaperCrawler,
        store=store,
        searcher=searcher,
        reconciler=reconciler,
        explorer=explorer,
        tracker=tracker,
        gate=gate,
        analyzer=analyzer,
        max_papers=config.max_papers_per_search,
        max_reference_depth=config.max_reference_depth,
    )


def create_container(settings: CrawlerSettings | None = None) -> ApplicationContainer:
    """Container configured from settings (environment when omitted)."""
    settings = settings or CrawlerSettings.from_env()
    container = ApplicationContainer()
    container.config.from_dict(settings.to_dict())
    return container


__all__ = ["ApplicationContainer", "create_container"]
