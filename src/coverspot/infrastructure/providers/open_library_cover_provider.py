"""OpenLibrary Cover Provider - ICoverProvider implementation for covers.openlibrary.org.

Hey future me - OpenLibrary covers need NO lookup call! The cover URL is a pure function
of the ISBN and the size letter:

    https://covers.openlibrary.org/b/isbn/{isbn}-{S|M|L}.jpg?default=false

So fetch() just builds the descriptor and the storage adapter does the actual request.
default=false makes OpenLibrary answer 404 for unknown ISBNs instead of serving a 1x1 blank
GIF - the download then fails cleanly (FAILURE_404) and the key lands in the bad cache.

Not every ISBN has every size, so size_tiers() walks L -> M -> S (or starts lower when a
smaller cover was asked for). Each size has its own bad-cache key ("{isbn}-L"), a missing
large scan must not hide the medium one.
"""

import logging

from coverspot.domain.ports.image_provider import ICoverProvider
from coverspot.domain.value_objects.image_details import (
    CoverImageSource,
    ImageDetails,
    ImageResolutionPreference,
)

logger = logging.getLogger(__name__)


class OpenLibraryCoverProvider(ICoverProvider):
    """Builds OpenLibrary cover URLs by ISBN."""

    SIZE_LETTERS = {
        ImageResolutionPreference.SMALL: "S",
        ImageResolutionPreference.MEDIUM: "M",
    }

    TIERS = (
        ImageResolutionPreference.LARGE,
        ImageResolutionPreference.MEDIUM,
        ImageResolutionPreference.SMALL,
    )

    def __init__(self, base_url: str = "https://covers.openlibrary.org/b/isbn") -> None:
        self.base_url = base_url.rstrip("/")

    @property
    def source(self) -> CoverImageSource:
        return CoverImageSource.OPEN_LIBRARY

    def size_letter(self, resolution: ImageResolutionPreference) -> str:
        return self.SIZE_LETTERS.get(resolution, "L")

    def cover_url(
        self,
        isbn: str,
        resolution: ImageResolutionPreference = ImageResolutionPreference.ANY,
    ) -> str:
        return f"{self.base_url}/{isbn}-{self.size_letter(resolution)}.jpg?default=false"

    def size_tiers(
        self, identifier: str, resolution: ImageResolutionPreference
    ) -> list[tuple[str, ImageResolutionPreference]]:
        if resolution is ImageResolutionPreference.SMALL:
            tiers = self.TIERS[2:]
        elif resolution is ImageResolutionPreference.MEDIUM:
            tiers = self.TIERS[1:]
        else:
            tiers = self.TIERS
        return [(f"{identifier}-{self.size_letter(tier)}", tier) for tier in tiers]

    async def fetch(
        self,
        identifier: str,
        resolution: ImageResolutionPreference = ImageResolutionPreference.ANY,
    ) -> ImageDetails | None:
        if not identifier or not identifier.strip():
            return None
        url = self.cover_url(identifier.strip(), resolution)
        logger.debug("OpenLibrary cover candidate for %s: %s", identifier, url)
        return ImageDetails(
            location_ref=url,
            source_label="OpenLibrary",
            source_system_id=identifier,
            source_kind=CoverImageSource.OPEN_LIBRARY,
            resolution_preference=(
                resolution
                if resolution in self.SIZE_LETTERS
                else ImageResolutionPreference.LARGE
            ),
        )
