"""Longitood Cover Provider - ICoverProvider implementation for bookcover.longitood.com.

Hey future me - Longitood scrapes Goodreads covers and answers with a tiny JSON document:

    GET https://bookcover.longitood.com/bookcover/{isbn}
    200 {"url": "https://images-na.ssl-images-amazon.com/..."}
    404 {"error": "Book not found"}

A 200 without "url" is passed on as a descriptor without location - the fetch
orchestrator records that as FAILURE_NO_URL_IN_RESPONSE, which is exactly what happened.
"""

import logging
from typing import Any

import httpx

from coverspot.domain.exceptions import ExternalServiceError
from coverspot.domain.ports.image_provider import ICoverProvider
from coverspot.domain.value_objects.image_details import (
    CoverImageSource,
    ImageDetails,
    ImageResolutionPreference,
)
from coverspot.infrastructure.integrations.http_pool import HttpClientPool

logger = logging.getLogger(__name__)


class LongitoodCoverProvider(ICoverProvider):
    """Looks up covers through the Longitood bookcover API."""

    def __init__(self, base_url: str = "https://bookcover.longitood.com/bookcover") -> None:
        self.base_url = base_url.rstrip("/")

    @property
    def source(self) -> CoverImageSource:
        return CoverImageSource.LONGITOOD

    async def fetch(
        self,
        identifier: str,
        resolution: ImageResolutionPreference = ImageResolutionPreference.ANY,
    ) -> ImageDetails | None:
        client = await HttpClientPool.get_client()
        try:
            response = await client.get(f"{self.base_url}/{identifier}")
        except httpx.HTTPError as e:
            raise ExternalServiceError("longitood", str(e) or type(e).__name__) from e

        if response.status_code == 404:
            logger.debug("Longitood has no cover for %s", identifier)
            return None
        if response.status_code >= 400:
            raise ExternalServiceError(
                "longitood",
                f"bookcover lookup returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data: dict[str, Any] = response.json()
        except ValueError as e:
            raise ExternalServiceError("longitood", "response was not JSON") from e

        url = data.get("url") if isinstance(data, dict) else None
        return ImageDetails(
            location_ref=url or None,
            source_label="Longitood",
            source_system_id=identifier,
            source_kind=CoverImageSource.LONGITOOD,
            resolution_preference=ImageResolutionPreference.ORIGINAL,
        )
