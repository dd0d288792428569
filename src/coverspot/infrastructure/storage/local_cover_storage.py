"""Local disk cover storage - ICoverStorage implementation.

Hey future me - this is the persistence adapter the fetch orchestrator hands remote URLs to.
It downloads the image ONCE, checks it's a real cover, writes it to the cache dir and returns
an ImageDetails whose location_ref is the public path the web layer serves it under.

    store(url)
        ├─ path_by_url hit + file still on disk  → reuse, no download
        ├─ URL known bad                         → SKIPPED_BAD_URL, None
        ├─ streamed download via HttpClientPool  → 404 / timeout / transport error / too large
        ├─ Pillow reads the dimensions           → not an image / 1x1 pixel / too small
        ├─ write <cache_dir>/<sha256-name>.<ext> → FAILURE_IO
        └─ path_by_url[url] = public path        → SUCCESS, details with dimensions

Every failure marks the URL bad (24h) and returns None. It records its OWN provenance attempt,
so a successful provider lookup shows two attempts: the provider's and this download.
Pillow is only used to READ dimensions - no resizing or re-encoding, the bytes are stored as-is.
"""

import asyncio
import logging
from io import BytesIO
from pathlib import Path

import httpx
from PIL import Image, UnidentifiedImageError

from coverspot.application.cache.cover_cache import CoverCacheManager
from coverspot.application.services.covers.cover_utils import (
    cache_filename_for_url,
    file_extension_for_url,
)
from coverspot.domain.entities.provenance import (
    AttemptRecord,
    ImageAttemptStatus,
    ProvenanceLog,
)
from coverspot.domain.ports.cover_storage import ICoverStorage
from coverspot.domain.value_objects.image_details import (
    HIGH_RES_PIXEL_THRESHOLD,
    MIN_ACCEPTABLE_CACHED_DIMENSION,
    MIN_VALID_DIMENSION,
    CoverImageSource,
    ImageDetails,
    ImageResolutionPreference,
    ImageSourceName,
)
from coverspot.infrastructure.integrations.http_pool import HttpClientPool

logger = logging.getLogger(__name__)

_FORMAT_EXTENSIONS = {"JPEG": ".jpg", "PNG": ".png", "GIF": ".gif", "WEBP": ".webp"}


class LocalDiskCoverStorage(ICoverStorage):
    """Stores downloaded covers on local disk."""

    def __init__(
        self,
        cache: CoverCacheManager,
        cache_dir: Path,
        public_prefix: str = "/book-covers",
        min_dimension: int = MIN_ACCEPTABLE_CACHED_DIMENSION,
        max_download_bytes: int = 10 * 1024 * 1024,
    ) -> None:
        self.cache = cache
        self.cache_dir = Path(cache_dir)
        self.public_prefix = public_prefix.rstrip("/")
        self.min_dimension = min_dimension
        self.max_download_bytes = max_download_bytes

    def public_path(self, filename: str) -> str:
        return f"{self.public_prefix}/{filename}"

    def disk_path(self, public_path: str) -> Path:
        return self.cache_dir / Path(public_path).name

    async def store(
        self,
        locator: str,
        item_id_for_log: str | None,
        provenance: ProvenanceLog,
        label: str,
    ) -> ImageDetails | None:
        attempt = provenance.start_attempt(ImageSourceName.LOCAL_CACHE, locator)

        reused = await self._reuse_cached_file(locator, label, item_id_for_log, attempt)
        if reused is not None:
            return reused

        if self.cache.is_known_bad_url(locator):
            attempt.fail(ImageAttemptStatus.SKIPPED_BAD_URL, "Known bad URL")
            return None

        content = await self._download(locator, attempt)
        if content is None:
            self.cache.mark_url_bad(locator)
            return None

        try:
            width, height, image_format = await asyncio.to_thread(_read_dimensions, content)
        except (UnidentifiedImageError, OSError, ValueError) as e:
            logger.debug("Downloaded data from %s is not an image: %s", locator, e)
            return self._reject(
                locator, attempt, ImageAttemptStatus.FAILURE_INVALID_DETAILS, "Not a decodable image"
            )

        if width < MIN_VALID_DIMENSION or height < MIN_VALID_DIMENSION:
            return self._reject(
                locator,
                attempt,
                ImageAttemptStatus.FAILURE_PLACEHOLDER_DETECTED,
                f"Tracking pixel / blank image ({width}x{height})",
            )
        if width < self.min_dimension or height < self.min_dimension:
            return self._reject(
                locator,
                attempt,
                ImageAttemptStatus.FAILURE_TOO_SMALL,
                f"Image too small ({width}x{height}, min {self.min_dimension})",
            )

        extension = _FORMAT_EXTENSIONS.get(image_format or "", file_extension_for_url(locator))
        filename = cache_filename_for_url(locator, extension)
        try:
            await asyncio.to_thread(self._write_file, filename, content)
        except OSError as e:
            logger.error("Could not write cover %s for book %s: %s", filename, item_id_for_log, e)
            return self._reject(locator, attempt, ImageAttemptStatus.FAILURE_IO, str(e))

        public = self.public_path(filename)
        self.cache.put_path_for_url(locator, public)
        attempt.succeed(locator, width, height)
        logger.debug(
            "Stored cover for book %s from %s as %s (%dx%d)",
            item_id_for_log,
            locator,
            public,
            width,
            height,
        )
        return self._details(public, label, item_id_for_log, width, height)

    async def _reuse_cached_file(
        self,
        locator: str,
        label: str,
        item_id_for_log: str | None,
        attempt: AttemptRecord,
    ) -> ImageDetails | None:
        cached = self.cache.get_path_for_url(locator)
        if not cached:
            return None

        path = self.disk_path(cached)
        try:
            content = await asyncio.to_thread(path.read_bytes)
            width, height, _ = await asyncio.to_thread(_read_dimensions, content)
        except (OSError, UnidentifiedImageError, ValueError):
            logger.debug("Cached cover file %s vanished or is broken, re-downloading", path)
            self.cache.path_by_url.invalidate(locator)
            return None

        attempt.succeed(locator, width, height)
        return self._details(cached, label, item_id_for_log, width, height)

    async def _download(self, url: str, attempt: AttemptRecord) -> bytes | None:
        client = await HttpClientPool.get_client()
        try:
            async with client.stream("GET", url) as response:
                if response.status_code == 404:
                    attempt.fail(ImageAttemptStatus.FAILURE_404, "HTTP 404")
                    return None
                if response.status_code >= 400:
                    attempt.fail(
                        ImageAttemptStatus.FAILURE_GENERIC_DOWNLOAD,
                        f"HTTP {response.status_code}",
                    )
                    return None
                return await self._read_limited(response, attempt)
        except httpx.TimeoutException as e:
            attempt.fail(ImageAttemptStatus.FAILURE_TIMEOUT, f"Timed out downloading: {e}")
            return None
        except httpx.HTTPError as e:
            attempt.fail(
                ImageAttemptStatus.FAILURE_GENERIC_DOWNLOAD, str(e) or type(e).__name__
            )
            return None

    async def _read_limited(
        self, response: httpx.Response, attempt: AttemptRecord
    ) -> bytes | None:
        # Stop reading as soon as the limit is crossed, a huge body never sits in memory
        declared = response.headers.get("Content-Length", "")
        if declared.isdigit() and int(declared) > self.max_download_bytes:
            attempt.fail(
                ImageAttemptStatus.FAILURE_GENERIC_DOWNLOAD,
                f"Image too large ({declared} bytes declared)",
            )
            return None

        content = bytearray()
        async for chunk in response.aiter_bytes():
            content.extend(chunk)
            if len(content) > self.max_download_bytes:
                attempt.fail(
                    ImageAttemptStatus.FAILURE_GENERIC_DOWNLOAD,
                    f"Image too large (more than {self.max_download_bytes} bytes)",
                )
                return None

        if not content:
            attempt.fail(ImageAttemptStatus.FAILURE_GENERIC_DOWNLOAD, "Empty response body")
            return None
        return bytes(content)

    def _reject(
        self,
        locator: str,
        attempt: AttemptRecord,
        status: ImageAttemptStatus,
        reason: str,
    ) -> None:
        attempt.fail(status, reason)
        self.cache.mark_url_bad(locator)
        return None

    def _write_file(self, filename: str, content: bytes) -> None:
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        target = self.cache_dir / filename
        # Write-then-rename so readers never see a half written file
        tmp = target.with_suffix(target.suffix + ".part")
        tmp.write_bytes(content)
        tmp.replace(target)

    @staticmethod
    def _details(
        public: str, label: str, item_id: str | None, width: int, height: int
    ) -> ImageDetails:
        return ImageDetails(
            location_ref=public,
            source_label=label,
            source_system_id=item_id,
            source_kind=CoverImageSource.LOCAL_CACHE,
            resolution_preference=_resolution_for(width, height),
        ).with_dimensions(width, height)


def _read_dimensions(content: bytes) -> tuple[int, int, str | None]:
    with Image.open(BytesIO(content)) as img:
        width, height = img.size
        return width, height, img.format


def _resolution_for(width: int, height: int) -> ImageResolutionPreference:
    if width * height >= HIGH_RES_PIXEL_THRESHOLD:
        return ImageResolutionPreference.LARGE
    if min(width, height) >= 300:
        return ImageResolutionPreference.MEDIUM
    return ImageResolutionPreference.SMALL
