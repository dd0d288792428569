"""Book image orchestration - the entry point for "give me a cover for this book"."""

from __future__ import annotations

import logging

from coverspot.application.services.covers.cover_management import (
    BookCoverManagementService,
    determine_fallback_url,
)
from coverspot.application.services.covers.cover_utils import LOCAL_PLACEHOLDER_PATH
from coverspot.domain.entities.book import Book, CoverResult, CoverState
from coverspot.domain.value_objects.image_details import (
    CoverImages,
    CoverImageSource,
    ImageResolutionPreference,
)

logger = logging.getLogger(__name__)

NULL_BOOK_ID = "null-book"
NULL_BOOK_TITLE = "Unknown Book"

_PLACEHOLDER_IMAGES = CoverImages(
    LOCAL_PLACEHOLDER_PATH, LOCAL_PLACEHOLDER_PATH, CoverImageSource.LOCAL_CACHE
)


class BookImageOrchestrationService:
    """Resolution facade.

    Hey future me - get_best_cover() returns as soon as the initial URL is picked. The
    provider calls happen later in the worker pool and only show up on a LATER call,
    via the final-details cache. Width/height/high-res stay None until then.

    The caller's Book is never modified; the result carries a new Book instance.
    """

    def __init__(self, cover_management: BookCoverManagementService) -> None:
        self.cover_management = cover_management

    async def get_best_cover(
        self,
        book: Book | None,
        preferred_source: CoverImageSource = CoverImageSource.ANY,
        resolution_preference: ImageResolutionPreference = ImageResolutionPreference.ANY,
    ) -> CoverResult:
        if book is None:
            logger.warning("get_best_cover called without a book, returning placeholder")
            placeholder_book = Book(id=NULL_BOOK_ID, title=NULL_BOOK_TITLE)
            return CoverResult(_with_placeholder_cover(placeholder_book), CoverState.UNRESOLVED)

        if not book.id:
            logger.warning("Book %r has no id, returning placeholder cover", book.title)
            return CoverResult(_with_placeholder_cover(book), CoverState.UNRESOLVED)

        fallback_url = determine_fallback_url(book)
        initial = self.cover_management.get_initial_cover(
            book, preferred_source, resolution_preference
        )
        cover_images = CoverImages(
            initial.cover_images.preferred_url, fallback_url, initial.cover_images.source
        )

        if initial.details is not None and initial.details.dimensions_known:
            width: int | None = initial.details.width
            height: int | None = initial.details.height
            high_res: bool | None = initial.details.is_high_resolution
        else:
            width = height = None
            high_res = None

        logger.debug(
            "Cover for book %s: %s (%s, fallback %s)",
            book.id,
            cover_images.preferred_url,
            initial.state.value,
            fallback_url,
        )
        updated = book.with_cover(
            cover_images.preferred_url, cover_images, width, height, high_res
        )
        return CoverResult(updated, initial.state)


def _with_placeholder_cover(book: Book) -> Book:
    return book.with_cover(LOCAL_PLACEHOLDER_PATH, _PLACEHOLDER_IMAGES, 0, 0, False)
