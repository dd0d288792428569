"""Google Books Cover Provider - ICoverProvider implementation for Google Books.

Hey future me - Google Books is the richest source but also the sloppiest:

FLOW:
    CoverSourceFetchingService
        │
        └─► GoogleBooksCoverProvider.fetch(identifier)
                │
                ├─► ISBN-10/13: GET {base}/volumes?q=isbn:{isbn}  → items[0]
                └─► otherwise:  GET {base}/volumes/{volume_id}   → the volume itself
                        │
                        └─► volumeInfo.imageLinks → ImageDetails

Google-Besonderheiten:
- imageLinks has up to six sizes (extraLarge ... smallThumbnail), most volumes only
  expose thumbnail + smallThumbnail
- URLs come as http:// with edge=curl (fake page curl) and fife sizing params, we
  clean those up via enhance_google_cover_url()
- pg=PA... URLs are page scans, not covers - skipped
- API key is optional (anonymous quota is small)
"""

import logging
from typing import Any
from urllib.parse import quote

import httpx

from coverspot.application.services.covers.cover_utils import (
    enhance_google_cover_url,
    is_likely_google_cover_url,
    looks_like_isbn,
)
from coverspot.domain.exceptions import ExternalServiceError
from coverspot.domain.ports.image_provider import ICoverProvider
from coverspot.domain.value_objects.image_details import (
    CoverImageSource,
    ImageDetails,
    ImageResolutionPreference,
)
from coverspot.infrastructure.integrations.http_pool import HttpClientPool

logger = logging.getLogger(__name__)


class GoogleBooksCoverProvider(ICoverProvider):
    """Looks up covers through the Google Books volumes API."""

    supports_volume_ids = True

    # Largest first. SMALL/MEDIUM requests walk a different order, see _size_order().
    IMAGE_LINK_PRIORITY = (
        "extraLarge",
        "large",
        "medium",
        "small",
        "thumbnail",
        "smallThumbnail",
    )

    SIZE_TO_RESOLUTION = {
        "extraLarge": ImageResolutionPreference.ORIGINAL,
        "large": ImageResolutionPreference.LARGE,
        "medium": ImageResolutionPreference.MEDIUM,
        "small": ImageResolutionPreference.SMALL,
        "thumbnail": ImageResolutionPreference.SMALL,
        "smallThumbnail": ImageResolutionPreference.SMALL,
    }

    def __init__(
        self,
        base_url: str = "https://www.googleapis.com/books/v1",
        api_key: str | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key

    @property
    def source(self) -> CoverImageSource:
        return CoverImageSource.GOOGLE_BOOKS

    async def fetch(
        self,
        identifier: str,
        resolution: ImageResolutionPreference = ImageResolutionPreference.ANY,
    ) -> ImageDetails | None:
        if looks_like_isbn(identifier):
            data = await self._get_json(
                f"{self.base_url}/volumes", {"q": f"isbn:{identifier}", "maxResults": "1"}
            )
            items = (data or {}).get("items") or []
            if not items:
                logger.debug("Google Books has no volume for ISBN %s", identifier)
                return None
            volume = items[0]
        else:
            # Not an ISBN: treat it as a Google volume id (books saved from a Google search)
            volume = await self._get_json(f"{self.base_url}/volumes/{quote(identifier)}", {})
            if not volume:
                logger.debug("Google Books has no volume with id %s", identifier)
                return None

        return self._pick_image(volume, identifier, resolution)

    async def _get_json(self, url: str, params: dict[str, str]) -> dict[str, Any] | None:
        if self.api_key:
            params = {**params, "key": self.api_key}

        client = await HttpClientPool.get_client()
        try:
            response = await client.get(url, params=params)
        except httpx.HTTPError as e:
            raise ExternalServiceError("google_books", str(e) or type(e).__name__) from e

        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise ExternalServiceError(
                "google_books",
                f"volumes lookup returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data: dict[str, Any] = response.json()
        except ValueError as e:
            raise ExternalServiceError("google_books", "response was not JSON") from e
        return data

    def _pick_image(
        self,
        volume: dict[str, Any],
        identifier: str,
        resolution: ImageResolutionPreference,
    ) -> ImageDetails | None:
        image_links: dict[str, str] = (volume.get("volumeInfo") or {}).get("imageLinks") or {}

        for size in self._size_order(resolution):
            raw_url = image_links.get(size)
            if not raw_url:
                continue
            url = enhance_google_cover_url(raw_url)
            if not is_likely_google_cover_url(url):
                logger.debug("Skipping non-cover Google image for %s: %s", identifier, url)
                continue
            return ImageDetails(
                location_ref=url,
                source_label="GoogleBooks",
                source_system_id=volume.get("id") or identifier,
                source_kind=CoverImageSource.GOOGLE_BOOKS,
                resolution_preference=self.SIZE_TO_RESOLUTION[size],
            )

        logger.debug("Google Books volume for %s has no usable imageLinks", identifier)
        return None

    def _size_order(self, resolution: ImageResolutionPreference) -> tuple[str, ...]:
        if resolution is ImageResolutionPreference.SMALL:
            return ("small", "thumbnail", "smallThumbnail", "medium", "large", "extraLarge")
        if resolution is ImageResolutionPreference.MEDIUM:
            return ("medium", "small", "large", "thumbnail", "extraLarge", "smallThumbnail")
        return self.IMAGE_LINK_PRIORITY
