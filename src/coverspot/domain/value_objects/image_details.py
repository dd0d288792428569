"""ImageDetails value object and the enums describing where a cover came from.

Hey future me - ImageDetails is THE currency of the cover pipeline. Providers return it,
the storage adapter returns it, the final-details cache stores it, placeholders are one.
It's frozen and the same instance is shared between caches and concurrent requests.
If you need other dimensions, derive a copy with with_dimensions().
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

# Pixel area from which a cover counts as "high resolution" (e.g. 600x800).
HIGH_RES_PIXEL_THRESHOLD = 480_000

# Smallest edge we accept for remote covers that aren't from Google Books.
MIN_ACCEPTABLE_DIMENSION = 200

# Smallest edge we accept for covers that are already cached locally.
MIN_ACCEPTABLE_CACHED_DIMENSION = 150

# Anything below this is a tracking pixel / broken image, not a cover.
MIN_VALID_DIMENSION = 2


class CoverImageSource(Enum):
    """Where a cover image comes from (or which source a caller prefers)."""

    ANY = "Any source"
    GOOGLE_BOOKS = "Google Books"
    OPEN_LIBRARY = "Open Library"
    LONGITOOD = "Longitood"
    S3_CACHE = "S3 Cache"
    LOCAL_CACHE = "Local Cache"
    NONE = "No Source"
    UNDEFINED = "Undefined Source"

    @property
    def display_name(self) -> str:
        return self.value

    @classmethod
    def parse(cls, raw: str | None) -> CoverImageSource:
        """Parse a user supplied source name, falling back to ANY."""
        if not raw:
            return cls.ANY
        try:
            return cls[raw.strip().upper()]
        except KeyError:
            return cls.ANY


class ImageResolutionPreference(Enum):
    """Quality tier a caller asks for (or a provider delivered)."""

    ANY = "Any Resolution"
    HIGH_ONLY = "High Resolution Only"
    HIGH_FIRST = "High Resolution First"
    LARGE = "Large"
    MEDIUM = "Medium"
    SMALL = "Small"
    ORIGINAL = "Original"
    UNKNOWN = "Unknown"

    @property
    def display_name(self) -> str:
        return self.value


class ImageSourceName(Enum):
    """Provider names as they appear in provenance records."""

    GOOGLE_BOOKS = "GoogleBooks"
    OPEN_LIBRARY = "OpenLibrary"
    LONGITOOD = "Longitood"
    LOCAL_CACHE = "LocalCache"
    S3_CACHE = "S3Cache"
    INTERNAL_PROCESSING = "InternalProcessing"
    UNKNOWN = "Unknown"

    @classmethod
    def from_cover_source(cls, source: CoverImageSource | None) -> ImageSourceName:
        return _COVER_SOURCE_TO_NAME.get(source, cls.UNKNOWN) if source else cls.UNKNOWN


_COVER_SOURCE_TO_NAME = {
    CoverImageSource.GOOGLE_BOOKS: ImageSourceName.GOOGLE_BOOKS,
    CoverImageSource.OPEN_LIBRARY: ImageSourceName.OPEN_LIBRARY,
    CoverImageSource.LONGITOOD: ImageSourceName.LONGITOOD,
    CoverImageSource.S3_CACHE: ImageSourceName.S3_CACHE,
    CoverImageSource.LOCAL_CACHE: ImageSourceName.LOCAL_CACHE,
}


@dataclass(frozen=True)
class ImageDetails:
    """Immutable description of one cover image.

    Attributes:
        location_ref: URL or storage key of the image
        source_label: Human readable origin ("GoogleBooks", "SYSTEM_PLACEHOLDER", ...)
        source_system_id: Provider specific id (ISBN, volume id, placeholder tag)
        source_kind: Which provider/category produced this image
        resolution_preference: Quality tier the image was requested/delivered at
        width: Pixel width, 0 when unknown
        height: Pixel height, 0 when unknown
        dimensions_known: True only for copies made via with_dimensions()

    Equality and hashing are structural over all fields (dataclass default).
    """

    location_ref: str | None
    source_label: str | None = None
    source_system_id: str | None = None
    source_kind: CoverImageSource = CoverImageSource.UNDEFINED
    resolution_preference: ImageResolutionPreference = ImageResolutionPreference.UNKNOWN
    width: int = 0
    height: int = 0
    dimensions_known: bool = False

    def with_dimensions(self, width: int, height: int) -> ImageDetails:
        """Return a copy with the given dimensions marked as known."""
        return replace(self, width=width, height=height, dimensions_known=True)

    @property
    def dimension_string(self) -> str | None:
        """'WxH' when dimensions are known, else None."""
        if not self.dimensions_known:
            return None
        return f"{self.width}x{self.height}"

    @property
    def is_high_resolution(self) -> bool:
        if not self.dimensions_known:
            return False
        return self.width * self.height >= HIGH_RES_PIXEL_THRESHOLD


@dataclass(frozen=True)
class CoverImages:
    """Preferred + fallback cover URL pair handed to clients."""

    preferred_url: str
    fallback_url: str
    source: CoverImageSource = CoverImageSource.UNDEFINED
