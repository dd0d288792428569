"""Cover resolution API endpoints.

Hey future me - GET /api/covers/{book_id} is the whole product: it answers IMMEDIATELY with
the best URL we know right now (final cover, provisional URL, the book's own URL or the
placeholder) and queues the real lookup in the background. Call it again later and the
state moves from "provisional" to "resolved" once the worker has stored a cover.

/_stats is declared BEFORE /{book_id}, otherwise "_stats" would be taken as a book id.
"""

import logging
from enum import Enum
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from coverspot.api.dependencies import get_cover_facade, get_cover_services
from coverspot.application.services.covers import BookImageOrchestrationService
from coverspot.domain.entities import Book, CoverResult
from coverspot.domain.value_objects import CoverImageSource, ImageResolutionPreference
from coverspot.infrastructure.container import CoverServices

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/covers", tags=["covers"])


class CoverResponse(BaseModel):
    """Cover resolution result for one book."""

    book_id: str = Field(description="Book the cover belongs to")
    cover_url: str | None = Field(description="URL to display right now")
    preferred_url: str | None = Field(description="Best URL known so far")
    fallback_url: str | None = Field(description="URL to use if preferred_url fails to load")
    source: str = Field(description="Where the cover came from")
    width: int | None = Field(default=None, description="Width in pixels, if resolved")
    height: int | None = Field(default=None, description="Height in pixels, if resolved")
    is_high_resolution: bool | None = Field(
        default=None, description="True when the cover is high resolution (resolved only)"
    )
    state: str = Field(description="unresolved, provisional, resolved or still_provisional")
    requested_source_preference: str = Field(description="Source preference used")

    @classmethod
    def from_result(
        cls, book_id: str, result: CoverResult, preference: CoverImageSource
    ) -> "CoverResponse":
        book = result.book
        images = book.cover_images
        return cls(
            book_id=book.id or book_id,
            cover_url=book.cover_image_url,
            preferred_url=images.preferred_url if images else None,
            fallback_url=images.fallback_url if images else None,
            source=images.source.display_name if images else CoverImageSource.UNDEFINED.value,
            width=book.cover_width,
            height=book.cover_height,
            is_high_resolution=book.is_cover_high_resolution,
            state=result.state.value,
            requested_source_preference=preference.name,
        )


def _parse_enum[E: Enum](enum_type: type[E], raw: str | None, default: E, param: str) -> E:
    # Accepts the member name (google_books, GOOGLE_BOOKS) or the display value ("Google Books")
    if raw is None or not raw.strip():
        return default
    value = raw.strip()
    try:
        return enum_type[value.upper().replace("-", "_")]
    except KeyError:
        pass
    for member in enum_type:
        if str(member.value).lower() == value.lower():
            return member
    allowed = ", ".join(m.name.lower() for m in enum_type)
    raise HTTPException(
        status_code=422,
        detail=f"Invalid {param} '{raw}'. Allowed: {allowed}",
    )


@router.get("/_stats")
async def cover_stats(
    services: CoverServices = Depends(get_cover_services),
) -> dict[str, Any]:
    """Cache, queue, worker and circuit breaker statistics."""
    return services.get_stats()


@router.get("/{book_id}", response_model=CoverResponse)
async def get_cover(
    book_id: str,
    title: str | None = Query(None, description="Book title (logging only)"),
    isbn13: str | None = Query(None, description="ISBN-13"),
    isbn10: str | None = Query(None, description="ISBN-10"),
    cover_url: str | None = Query(None, description="Cover URL already known for the book"),
    image_url: str | None = Query(None, description="Secondary image URL for the book"),
    source: str | None = Query(None, description="Preferred source, e.g. google_books"),
    resolution: str | None = Query(None, description="Resolution preference, e.g. high_first"),
    facade: BookImageOrchestrationService = Depends(get_cover_facade),
) -> CoverResponse:
    """Return the best cover known right now and schedule background resolution."""
    preferred_source = _parse_enum(CoverImageSource, source, CoverImageSource.ANY, "source")
    resolution_preference = _parse_enum(
        ImageResolutionPreference, resolution, ImageResolutionPreference.ANY, "resolution"
    )

    book = Book(
        id=book_id,
        title=title,
        isbn13=isbn13,
        isbn10=isbn10,
        cover_image_url=cover_url,
        image_url=image_url,
    )
    result = await facade.get_best_cover(book, preferred_source, resolution_preference)
    logger.debug("Cover for book %s: %s (%s)", book_id, result.cover_url, result.state.value)
    return CoverResponse.from_result(book_id, result, preferred_source)
