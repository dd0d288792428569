"""Cover cache manager - every positive and negative cover cache in one place.

Hey future me - this owns ALL mutable shared state of the cover pipeline:

    path_by_url         image URL   -> stored path      (expire 1d after access)
    provisional_url     identifier  -> best-known URL   (expire 6h after write)
    final_details       identifier  -> ImageDetails     (expire 7d after access)
    bad_urls            image URL   -> marker           (expire 24h after write)
    bad_identifiers[p]  identifier  -> marker, one cache per provider (24h after write)

Nothing else in the pipeline keeps state. Concurrent resolutions of the same identifier
race freely here - last put wins, there is no request-level locking.

Known-bad markings are monotonic: nothing in here un-marks a key. A bad marker only
goes away when its TTL runs out (or on clear()).
"""

import logging
import threading
from collections.abc import Callable
from typing import Any

from coverspot.application.cache.base_cache import (
    BoundedTTLCache,
    Clock,
    ExpiryPolicy,
)
from coverspot.config.settings import CoverCacheSettings
from coverspot.domain.value_objects.image_details import CoverImageSource, ImageDetails

logger = logging.getLogger(__name__)

KnownBadChecker = Callable[[str | None], bool]
KnownBadMarker = Callable[[str | None], None]


class CoverCacheManager:
    """Positive and negative caches for cover resolution."""

    def __init__(
        self,
        settings: CoverCacheSettings | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.settings = settings or CoverCacheSettings()
        self._clock_kwargs: dict[str, Clock] = {"clock": clock} if clock else {}
        s = self.settings

        self.path_by_url: BoundedTTLCache[str, str] = BoundedTTLCache(
            "path_by_url",
            s.path_by_url_capacity,
            s.path_by_url_ttl_seconds,
            ExpiryPolicy.AFTER_ACCESS,
            **self._clock_kwargs,
        )
        self.provisional_url: BoundedTTLCache[str, str] = BoundedTTLCache(
            "provisional_url",
            s.provisional_url_capacity,
            s.provisional_url_ttl_seconds,
            ExpiryPolicy.AFTER_WRITE,
            **self._clock_kwargs,
        )
        self.final_details: BoundedTTLCache[str, ImageDetails] = BoundedTTLCache(
            "final_details",
            s.final_details_capacity,
            s.final_details_ttl_seconds,
            ExpiryPolicy.AFTER_ACCESS,
            **self._clock_kwargs,
        )
        self.bad_urls: BoundedTTLCache[str, bool] = BoundedTTLCache(
            "bad_urls",
            s.bad_url_capacity,
            s.bad_url_ttl_seconds,
            ExpiryPolicy.AFTER_WRITE,
            **self._clock_kwargs,
        )
        self._bad_identifiers: dict[CoverImageSource, BoundedTTLCache[str, bool]] = {}
        self._bad_identifiers_lock = threading.Lock()

    # --- path by URL -------------------------------------------------------------------------

    def get_path_for_url(self, url: str | None) -> str | None:
        if not url:
            return None
        return self.path_by_url.get(url)

    def put_path_for_url(self, url: str, path: str) -> None:
        self.path_by_url.put(url, path)

    # --- provisional URL by identifier -------------------------------------------------------

    def get_provisional_url(self, identifier: str | None) -> str | None:
        if not identifier:
            return None
        return self.provisional_url.get(identifier)

    def put_provisional_url(self, identifier: str, url: str) -> None:
        self.provisional_url.put(identifier, url)

    def invalidate_provisional_url(self, identifier: str) -> None:
        self.provisional_url.invalidate(identifier)

    # --- final details by identifier ---------------------------------------------------------

    def get_final_details(self, identifier: str | None) -> ImageDetails | None:
        if not identifier:
            return None
        return self.final_details.get(identifier)

    def put_final_details(self, identifier: str, details: ImageDetails) -> None:
        self.final_details.put(identifier, details)

    def invalidate_final_details(self, identifier: str) -> None:
        self.final_details.invalidate(identifier)

    # --- known bad URLs ----------------------------------------------------------------------

    def is_known_bad_url(self, url: str | None) -> bool:
        if not url:
            return False
        return self.bad_urls.get(url) is not None

    def mark_url_bad(self, url: str | None) -> None:
        if not url:
            return
        self.bad_urls.put(url, True)
        logger.debug("Marked URL as known bad: %s", url)

    # --- known bad identifiers, one cache per provider ---------------------------------------

    # Hey future me, provider caches are created lazily on first use so adding a provider never
    # means touching this class. An empty identifier short-circuits to "not bad" without even
    # creating the provider's cache.
    def _bad_identifier_cache(self, provider: CoverImageSource) -> BoundedTTLCache[str, bool]:
        with self._bad_identifiers_lock:
            cache = self._bad_identifiers.get(provider)
            if cache is None:
                cache = BoundedTTLCache(
                    f"bad_identifiers:{provider.name.lower()}",
                    self.settings.bad_identifier_capacity,
                    self.settings.bad_identifier_ttl_seconds,
                    ExpiryPolicy.AFTER_WRITE,
                    **self._clock_kwargs,
                )
                self._bad_identifiers[provider] = cache
            return cache

    def is_known_bad_identifier(
        self, provider: CoverImageSource, identifier: str | None
    ) -> bool:
        if not identifier:
            return False
        return self._bad_identifier_cache(provider).get(identifier) is not None

    def mark_identifier_bad(
        self, provider: CoverImageSource, identifier: str | None
    ) -> None:
        if not identifier:
            return
        self._bad_identifier_cache(provider).put(identifier, True)
        logger.debug("Marked %s identifier as known bad: %s", provider.name, identifier)

    def known_bad_checker(self, provider: CoverImageSource) -> KnownBadChecker:
        """Predicate for the fetch orchestrator, bound to one provider."""
        return lambda identifier: self.is_known_bad_identifier(provider, identifier)

    def known_bad_marker(self, provider: CoverImageSource) -> KnownBadMarker:
        """Marker for the fetch orchestrator, bound to one provider."""
        return lambda identifier: self.mark_identifier_bad(provider, identifier)

    # --- housekeeping ------------------------------------------------------------------------

    def _all_caches(self) -> list[BoundedTTLCache[Any, Any]]:
        with self._bad_identifiers_lock:
            provider_caches = list(self._bad_identifiers.values())
        return [
            self.path_by_url,
            self.provisional_url,
            self.final_details,
            self.bad_urls,
            *provider_caches,
        ]

    def cleanup_expired(self) -> int:
        removed = sum(cache.cleanup_expired() for cache in self._all_caches())
        if removed:
            logger.debug("Removed %d expired cover cache entries", removed)
        return removed

    def clear(self) -> None:
        for cache in self._all_caches():
            cache.clear()

    def get_stats(self) -> dict[str, Any]:
        return {cache.name: cache.get_stats() for cache in self._all_caches()}
