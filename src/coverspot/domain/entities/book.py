"""Book entity and the cover result returned by the resolution facade."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

from coverspot.domain.value_objects.image_details import CoverImages


class CoverState(Enum):
    """Lifecycle of one book's cover resolution.

    UNRESOLVED -> PROVISIONAL (fast path assigned) -> RESOLVED | STILL_PROVISIONAL.
    RESOLVED holds until the final-details entry expires.
    """

    UNRESOLVED = "unresolved"
    PROVISIONAL = "provisional"
    RESOLVED = "resolved"
    STILL_PROVISIONAL = "still_provisional"


@dataclass(frozen=True)
class Book:
    """Minimal catalog item as far as cover resolution is concerned.

    Frozen: resolution never mutates the caller's book, it returns a new one
    via with_cover().
    """

    id: str | None
    title: str | None = None
    isbn13: str | None = None
    isbn10: str | None = None
    cover_image_url: str | None = None
    image_url: str | None = None
    cover_images: CoverImages | None = None
    cover_width: int | None = None
    cover_height: int | None = None
    is_cover_high_resolution: bool | None = None

    @property
    def identifier_key(self) -> str | None:
        """ISBN-13, then ISBN-10, then the internal id."""
        return self.isbn13 or self.isbn10 or self.id or None

    @property
    def isbn(self) -> str | None:
        return self.isbn13 or self.isbn10 or None

    def with_cover(
        self,
        cover_url: str,
        cover_images: CoverImages,
        width: int | None,
        height: int | None,
        is_high_resolution: bool | None,
    ) -> Book:
        return replace(
            self,
            cover_image_url=cover_url,
            cover_images=cover_images,
            cover_width=width,
            cover_height=height,
            is_cover_high_resolution=is_high_resolution,
        )


@dataclass(frozen=True)
class CoverResult:
    """What get_best_cover() hands back: a new Book plus where its cover stands."""

    book: Book
    state: CoverState

    @property
    def cover_url(self) -> str | None:
        return self.book.cover_image_url

    @property
    def fallback_url(self) -> str | None:
        return self.book.cover_images.fallback_url if self.book.cover_images else None
