"""Book cover management - fast path + background resolution.

Hey future me - two halves, two very different speed contracts:

get_initial_cover() is the FAST PATH. Synchronous, cache reads only, never awaits:
    final_details hit     -> RESOLVED, no background work at all
    provisional URL hit   -> PROVISIONAL, background job submitted
    book's own cover URL  -> PROVISIONAL, remembered as provisional, job submitted
    nothing               -> placeholder, job submitted

process_cover_in_background() is what the worker pool runs for each job. Its ONLY
observable effect is a cache write:
    success -> final_details[identifier] = details, provisional URL invalidated (RESOLVED)
    failure -> caches untouched, the provisional URL keeps serving (STILL_PROVISIONAL)
It never raises - a broken job must not take a worker down.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from coverspot.application.cache.cover_cache import CoverCacheManager
from coverspot.application.services.covers.cover_utils import (
    LOCAL_PLACEHOLDER_PATH,
    get_identifier_key,
    infer_source_from_url,
    is_valid_image_details,
)
from coverspot.application.services.covers.queue import (
    CoverResolutionJob,
    CoverResolutionQueue,
)
from coverspot.application.services.covers.source_fetching import (
    CoverSourceFetchingService,
)
from coverspot.domain.entities.book import Book, CoverState
from coverspot.domain.value_objects.image_details import (
    CoverImages,
    CoverImageSource,
    ImageDetails,
    ImageResolutionPreference,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InitialCover:
    """Outcome of the fast path."""

    cover_images: CoverImages
    details: ImageDetails | None  # set only for final-details hits
    state: CoverState
    scheduled: bool = False


def determine_fallback_url(book: Book | None) -> str:
    """Book's cover URL, else its secondary image URL, else the placeholder."""
    if book is None:
        return LOCAL_PLACEHOLDER_PATH
    for candidate in (book.cover_image_url, book.image_url):
        if candidate and candidate.strip() and candidate != LOCAL_PLACEHOLDER_PATH:
            return candidate
    return LOCAL_PLACEHOLDER_PATH


class BookCoverManagementService:
    """Chooses the immediately servable cover URL and schedules the real lookup."""

    def __init__(
        self,
        cache: CoverCacheManager,
        source_fetching: CoverSourceFetchingService,
        scheduler: CoverResolutionQueue,
    ) -> None:
        self.cache = cache
        self.source_fetching = source_fetching
        self.scheduler = scheduler

    def get_initial_cover(
        self,
        book: Book,
        preferred_source: CoverImageSource = CoverImageSource.ANY,
        resolution: ImageResolutionPreference = ImageResolutionPreference.ANY,
    ) -> InitialCover:
        identifier = get_identifier_key(book)
        fallback_url = determine_fallback_url(book)
        if not identifier:
            return InitialCover(
                cover_images=CoverImages(
                    LOCAL_PLACEHOLDER_PATH, fallback_url, CoverImageSource.LOCAL_CACHE
                ),
                details=None,
                state=CoverState.UNRESOLVED,
            )

        final = self.cache.get_final_details(identifier)
        if is_valid_image_details(final):
            assert final is not None
            logger.debug("Final cover cache hit for %s: %s", identifier, final.location_ref)
            return InitialCover(
                cover_images=CoverImages(
                    final.location_ref or fallback_url, fallback_url, final.source_kind
                ),
                details=final,
                state=CoverState.RESOLVED,
            )

        provisional = self.cache.get_provisional_url(identifier)
        initial_url = provisional or fallback_url
        if provisional is None and initial_url != LOCAL_PLACEHOLDER_PATH:
            self.cache.put_provisional_url(identifier, initial_url)

        job = CoverResolutionJob.for_book(
            book,
            identifier,
            preferred_source=preferred_source,
            resolution=resolution,
            provisional_hint=None if initial_url == LOCAL_PLACEHOLDER_PATH else initial_url,
        )
        scheduled = self.scheduler.submit(job)

        return InitialCover(
            cover_images=CoverImages(
                initial_url, fallback_url, infer_source_from_url(initial_url)
            ),
            details=None,
            state=CoverState.PROVISIONAL,
            scheduled=scheduled,
        )

    async def process_cover_in_background(self, job: CoverResolutionJob) -> CoverState:
        """Run the authoritative lookup for one job and write the outcome to the cache."""
        if job.book is None or not job.identifier:
            logger.warning("Ignoring cover job without book/identifier: %r", job)
            return CoverState.STILL_PROVISIONAL

        try:
            details, provenance = await self.source_fetching.fetch_best_cover(
                job.book,
                preferred_source=job.preferred_source,
                resolution=job.resolution,
                provisional_hint=job.provisional_hint,
            )
        except Exception as e:
            logger.exception("Background cover resolution crashed for %s: %s", job.identifier, e)
            return CoverState.STILL_PROVISIONAL

        if not is_valid_image_details(details):
            logger.info(
                "No cover resolved for %s, keeping provisional URL (%d attempts)",
                job.identifier,
                len(provenance),
            )
            logger.debug("Provenance for %s: %s", job.identifier, provenance.to_dict())
            return CoverState.STILL_PROVISIONAL

        self.cache.put_final_details(job.identifier, details)
        self.cache.invalidate_provisional_url(job.identifier)
        logger.info(
            "Resolved cover for %s -> %s (%s)",
            job.identifier,
            details.location_ref,
            details.dimension_string or "dimensions unknown",
        )
        return CoverState.RESOLVED
