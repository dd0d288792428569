"""Explicit wiring of the cover pipeline.

Hey future me - there is NO service locator and no global singletons for the pipeline
(the HTTP pool and the breaker registry are the only process-wide things). Everything is
built here once, in dependency order, and handed to the FastAPI lifespan as one
CoverServices bundle. Tests build their own bundle with a fake storage or fake providers.

    settings
      └─ CoverCacheManager
           ├─ LocalDiskCoverStorage (or injected)
           ├─ providers (in settings.providers.order) ─ each wrapped in ResilientCoverProvider
           ├─ CoverFetchOrchestrator(storage, timeouts)
           ├─ CoverSourceFetchingService(cache, orchestrator, providers)
           ├─ CoverResolutionQueue ─► BookCoverManagementService ─► BookImageOrchestrationService
           └─ CoverResolutionWorker(queue, management.process_cover_in_background)
"""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from coverspot.application.cache.cover_cache import CoverCacheManager
from coverspot.application.services.covers import (
    BookCoverManagementService,
    BookImageOrchestrationService,
    CoverFetchOrchestrator,
    CoverResolutionQueue,
    CoverSourceFetchingService,
)
from coverspot.application.workers.cover_resolution_worker import CoverResolutionWorker
from coverspot.config.settings import ProviderName, ProviderSettings, Settings
from coverspot.domain.ports import ICoverProvider, ICoverStorage
from coverspot.infrastructure.observability.circuit_breaker import (
    CircuitBreaker,
    get_circuit_breaker,
)
from coverspot.infrastructure.providers import (
    GoogleBooksCoverProvider,
    LongitoodCoverProvider,
    OpenLibraryCoverProvider,
    ResilientCoverProvider,
)
from coverspot.infrastructure.storage import LocalDiskCoverStorage

logger = logging.getLogger(__name__)


def _google_books(s: ProviderSettings) -> ICoverProvider:
    return GoogleBooksCoverProvider(s.google_books_base_url, s.google_books_api_key)


def _open_library(s: ProviderSettings) -> ICoverProvider:
    return OpenLibraryCoverProvider(s.open_library_covers_base_url)


def _longitood(s: ProviderSettings) -> ICoverProvider:
    return LongitoodCoverProvider(s.longitood_base_url)


PROVIDER_FACTORIES: dict[ProviderName, Callable[[ProviderSettings], ICoverProvider]] = {
    "google_books": _google_books,
    "open_library": _open_library,
    "longitood": _longitood,
}


@dataclass
class CoverServices:
    """Everything the API layer needs, built once per application."""

    settings: Settings
    cache: CoverCacheManager
    storage: ICoverStorage
    providers: list[ICoverProvider]
    orchestrator: CoverFetchOrchestrator
    source_fetching: CoverSourceFetchingService
    queue: CoverResolutionQueue
    management: BookCoverManagementService
    worker: CoverResolutionWorker
    facade: BookImageOrchestrationService
    breakers: dict[str, CircuitBreaker] = field(default_factory=dict)

    def get_stats(self) -> dict[str, Any]:
        return {
            "caches": self.cache.get_stats(),
            "queue": self.queue.get_stats(),
            "worker": self.worker.get_stats(),
            "circuit_breakers": {
                name: breaker.get_stats() for name, breaker in self.breakers.items()
            },
        }


def build_providers(
    settings: ProviderSettings,
) -> tuple[list[ICoverProvider], dict[str, CircuitBreaker]]:
    """Create the configured providers, each behind its own circuit breaker."""
    providers: list[ICoverProvider] = []
    breakers: dict[str, CircuitBreaker] = {}
    for name in settings.order:
        breaker = get_circuit_breaker(
            name,
            failure_threshold=settings.circuit_failure_threshold,
            reset_timeout=settings.circuit_reset_timeout_seconds,
        )
        breakers[name] = breaker
        providers.append(
            ResilientCoverProvider(
                PROVIDER_FACTORIES[name](settings),
                breaker,
                timeout=settings.fetch_timeout_seconds,
            )
        )
    return providers, breakers


def build_cover_services(
    settings: Settings,
    storage: ICoverStorage | None = None,
    providers: Sequence[ICoverProvider] | None = None,
) -> CoverServices:
    """Wire the cover pipeline from settings.

    Args:
        settings: Application settings
        storage: Storage adapter override (default: LocalDiskCoverStorage)
        providers: Provider override, used as-is without breaker wrapping

    Returns:
        Fully wired CoverServices (worker not started yet)
    """
    cache = CoverCacheManager(settings.cache)

    if storage is None:
        storage = LocalDiskCoverStorage(
            cache,
            settings.storage.cache_dir,
            public_prefix=settings.storage.public_prefix,
            min_dimension=settings.storage.min_dimension,
            max_download_bytes=settings.storage.max_download_bytes,
        )

    breakers: dict[str, CircuitBreaker] = {}
    fetch_timeout: float | None = settings.providers.fetch_timeout_seconds
    if providers is None:
        provider_list, breakers = build_providers(settings.providers)
        # Wrapped providers time out inside their breaker. A second, outer timeout
        # would cancel first and the breaker would never count the failure.
        fetch_timeout = None
    else:
        provider_list = list(providers)

    orchestrator = CoverFetchOrchestrator(
        storage,
        fetch_timeout=fetch_timeout,
        store_timeout=settings.storage.store_timeout_seconds,
    )
    source_fetching = CoverSourceFetchingService(cache, orchestrator, provider_list)
    queue = CoverResolutionQueue(max_size=settings.worker.queue_max_size)
    management = BookCoverManagementService(cache, source_fetching, queue)
    worker = CoverResolutionWorker(
        queue,
        management.process_cover_in_background,
        max_concurrent=settings.worker.max_concurrent,
    )
    facade = BookImageOrchestrationService(management)

    logger.info(
        "Cover pipeline wired: providers=%s, workers=%d, queue_max=%d",
        [p.provider_name.value for p in provider_list],
        settings.worker.max_concurrent,
        settings.worker.queue_max_size,
    )
    return CoverServices(
        settings=settings,
        cache=cache,
        storage=storage,
        providers=provider_list,
        orchestrator=orchestrator,
        source_fetching=source_fetching,
        queue=queue,
        management=management,
        worker=worker,
        facade=facade,
        breakers=breakers,
    )
