"""Multi-source cover fetching.

Composes the single-source CoverFetchOrchestrator into a fallback chain:

1. The provisional hint (the URL the caller already saw), keyed by URL. A Google
   Books hint is rewritten first (https, no curl, default zoom and zoom=0) and the
   bigger of the stored variants wins
2. Every configured provider in order, keyed by ISBN against that provider's
   known-bad cache; a preferred source is moved to the front. Providers with fixed
   size variants are walked size by size (OpenLibrary L, M, S)
3. No ISBN: providers that accept volume ids (Google Books) are asked with book.id

The first acceptable success wins. Each call gets its own provenance attempt, all
in the one ProvenanceLog created per request.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Sequence

from coverspot.application.cache.cover_cache import CoverCacheManager
from coverspot.application.services.covers.cover_utils import (
    create_placeholder,
    enhance_google_cover_url,
    get_identifier_key,
    infer_source_from_url,
    is_likely_google_cover_url,
    is_valid_image_details,
)
from coverspot.application.services.covers.fetch_helper import CoverFetchOrchestrator
from coverspot.domain.entities.book import Book
from coverspot.domain.entities.provenance import ProvenanceLog
from coverspot.domain.ports.image_provider import ICoverProvider
from coverspot.domain.value_objects.image_details import (
    CoverImageSource,
    ImageDetails,
    ImageResolutionPreference,
    ImageSourceName,
)

logger = logging.getLogger(__name__)

ALL_SOURCES_FAILED = "all-sources-failed"


class CoverSourceFetchingService:
    """Tries the provisional hint, then each provider, until one yields a stored cover."""

    def __init__(
        self,
        cache: CoverCacheManager,
        orchestrator: CoverFetchOrchestrator,
        providers: Sequence[ICoverProvider],
    ) -> None:
        self.cache = cache
        self.orchestrator = orchestrator
        self.providers = list(providers)

    def ordered_providers(self, preferred_source: CoverImageSource) -> list[ICoverProvider]:
        """Configured order, with the preferred source (if any) moved to the front."""
        if preferred_source in (CoverImageSource.ANY, CoverImageSource.UNDEFINED):
            return list(self.providers)
        preferred = [p for p in self.providers if p.source is preferred_source]
        others = [p for p in self.providers if p.source is not preferred_source]
        return preferred + others

    async def fetch_best_cover(
        self,
        book: Book,
        preferred_source: CoverImageSource = CoverImageSource.ANY,
        resolution: ImageResolutionPreference = ImageResolutionPreference.ANY,
        provisional_hint: str | None = None,
    ) -> tuple[ImageDetails, ProvenanceLog]:
        """Resolve the best stored cover for a book.

        Returns:
            (details, provenance) - details is a placeholder when nothing worked
        """
        item_id = book.id or get_identifier_key(book)
        provenance = ProvenanceLog(item_id)
        fallback: ImageDetails | None = None

        if self._hint_is_usable(provisional_hint, preferred_source):
            assert provisional_hint is not None
            details = await self._try_hint(provisional_hint, item_id, provenance)
            if is_valid_image_details(details):
                accepted, fallback = _apply_resolution_preference(details, resolution, fallback)
                if accepted is not None:
                    return accepted, provenance

        identifier, candidates = self._lookup_plan(book, preferred_source)
        for provider in candidates:
            if not await provider.is_available():
                logger.debug("Provider %s unavailable, skipping", provider.provider_name.value)
                continue

            for cache_key, tier in provider.size_tiers(identifier, resolution):
                details = await self.orchestrator.resolve(
                    cache_key=cache_key,
                    is_known_bad=self.cache.known_bad_checker(provider.source),
                    mark_known_bad=self.cache.known_bad_marker(provider.source),
                    remote_fetch=functools.partial(provider.fetch, identifier, tier),
                    attempt_label=provider.source.display_name,
                    provider_kind=provider.provider_name,
                    download_label=provider.provider_name.value,
                    placeholder_reason_prefix=provider.source.name.lower().replace("_", ""),
                    provenance=provenance,
                    item_id_for_log=item_id,
                )
                if not is_valid_image_details(details):
                    continue

                accepted, fallback = _apply_resolution_preference(details, resolution, fallback)
                if accepted is not None:
                    return accepted, provenance
                # A smaller size of the same cover won't satisfy the preference either
                break

        if fallback is not None:
            logger.info(
                "No high resolution cover for book %s, using %s",
                item_id,
                fallback.location_ref,
            )
            return fallback, provenance

        logger.info(
            "All cover sources failed for book %s (%d attempts)", item_id, len(provenance)
        )
        return create_placeholder(item_id, ALL_SOURCES_FAILED), provenance

    def _lookup_plan(
        self, book: Book, preferred_source: CoverImageSource
    ) -> tuple[str, list[ICoverProvider]]:
        """Identifier to query and the providers to ask, in order."""
        ordered = self.ordered_providers(preferred_source)
        if book.isbn:
            return book.isbn, ordered
        if book.id:
            # No ISBN: only providers that can look the book up by volume id get a try
            by_volume = [p for p in ordered if p.supports_volume_ids]
            logger.debug(
                "Book %s has no ISBN, trying %d volume id provider(s)", book.id, len(by_volume)
            )
            return book.id, by_volume
        return "", []

    def _hint_is_usable(
        self, hint: str | None, preferred_source: CoverImageSource
    ) -> bool:
        if not hint or not hint.startswith(("http://", "https://")):
            return False
        if preferred_source in (CoverImageSource.ANY, CoverImageSource.UNDEFINED):
            return True
        return infer_source_from_url(hint) in (preferred_source, CoverImageSource.ANY)

    async def _try_hint(
        self, hint: str, item_id: str | None, provenance: ProvenanceLog
    ) -> ImageDetails:
        source = infer_source_from_url(hint)
        if source is not CoverImageSource.GOOGLE_BOOKS:
            return await self._resolve_hint_url(hint, source, item_id, provenance)

        # Hey future me - Google hints are usually the curled zoom=1 thumbnail from the
        # volume JSON. The cleaned URL and its zoom=0 sibling are both tried, the larger wins.
        variants = [
            url
            for url in dict.fromkeys(
                (enhance_google_cover_url(hint), enhance_google_cover_url(hint, zoom=0))
            )
            if url and is_likely_google_cover_url(url)
        ]
        if not variants:
            logger.debug("Google hint %s for book %s is not a cover, skipping", hint, item_id)
            return create_placeholder(item_id, "provisional-not-a-cover")

        results = [
            await self._resolve_hint_url(url, source, item_id, provenance) for url in variants
        ]
        stored = [details for details in results if is_valid_image_details(details)]
        if not stored:
            return results[-1]
        return max(stored, key=_pixel_area)

    async def _resolve_hint_url(
        self,
        url: str,
        source: CoverImageSource,
        item_id: str | None,
        provenance: ProvenanceLog,
    ) -> ImageDetails:
        hinted = ImageDetails(
            location_ref=url,
            source_label="provisional",
            source_system_id=item_id,
            source_kind=source,
            resolution_preference=ImageResolutionPreference.UNKNOWN,
        )

        async def fetch_hint() -> ImageDetails:
            return hinted

        return await self.orchestrator.resolve(
            cache_key=url,
            is_known_bad=self.cache.is_known_bad_url,
            mark_known_bad=self.cache.mark_url_bad,
            remote_fetch=fetch_hint,
            attempt_label="Provisional URL",
            provider_kind=ImageSourceName.from_cover_source(source),
            download_label="provisional",
            placeholder_reason_prefix="provisional",
            provenance=provenance,
            item_id_for_log=item_id,
        )


def _pixel_area(details: ImageDetails) -> int:
    return details.width * details.height if details.dimensions_known else 0


def _apply_resolution_preference(
    details: ImageDetails,
    resolution: ImageResolutionPreference,
    fallback: ImageDetails | None,
) -> tuple[ImageDetails | None, ImageDetails | None]:
    """Decide whether a stored cover satisfies the requested resolution.

    Returns:
        (accepted, fallback) - accepted is None when the search should go on
    """
    if resolution is ImageResolutionPreference.HIGH_ONLY:
        if details.dimensions_known and not details.is_high_resolution:
            logger.debug("Rejecting %s: not high resolution", details.location_ref)
            return None, fallback
        return details, fallback

    if resolution is ImageResolutionPreference.HIGH_FIRST:
        if details.dimensions_known and not details.is_high_resolution:
            return None, fallback or details
        return details, fallback

    return details, fallback


__all__ = ["ALL_SOURCES_FAILED", "CoverSourceFetchingService"]
