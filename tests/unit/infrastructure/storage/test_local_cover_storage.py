"""Tests for LocalDiskCoverStorage."""

from io import BytesIO
from pathlib import Path

import httpx
import pytest
from PIL import Image
from pytest_httpx import IteratorStream

from coverspot.application.cache.cover_cache import CoverCacheManager
from coverspot.application.services.covers.cover_utils import cache_filename_for_url
from coverspot.domain.entities import ImageAttemptStatus, ProvenanceLog
from coverspot.domain.value_objects import (
    CoverImageSource,
    ImageResolutionPreference,
    ImageSourceName,
)
from coverspot.infrastructure.integrations.http_pool import HttpClientPool
from coverspot.infrastructure.storage import LocalDiskCoverStorage

URL = "https://covers.example.com/dune.jpg"


def _image_bytes(width: int, height: int, fmt: str = "PNG") -> bytes:
    buffer = BytesIO()
    Image.new("RGB", (width, height), color=(200, 100, 50)).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture(autouse=True)
async def close_pool():
    yield
    await HttpClientPool.close()


@pytest.fixture
def cache() -> CoverCacheManager:
    return CoverCacheManager()


@pytest.fixture
def storage(cache, tmp_path: Path) -> LocalDiskCoverStorage:
    return LocalDiskCoverStorage(cache, tmp_path / "covers", min_dimension=150)


@pytest.fixture
def provenance() -> ProvenanceLog:
    return ProvenanceLog("book-1")


class TestStoreSuccess:
    """Download, measure, write, remember."""

    async def test_stores_file_and_returns_public_path(
        self, storage, cache, provenance, httpx_mock, tmp_path
    ) -> None:
        content = _image_bytes(400, 600)
        httpx_mock.add_response(url=URL, content=content)

        details = await storage.store(URL, "book-1", provenance, "GoogleBooks")

        filename = cache_filename_for_url(URL, ".png")
        assert details is not None
        assert details.location_ref == f"/book-covers/{filename}"
        assert details.source_label == "GoogleBooks"
        assert details.source_system_id == "book-1"
        assert details.source_kind is CoverImageSource.LOCAL_CACHE
        assert (details.width, details.height) == (400, 600)
        assert details.dimensions_known
        assert details.resolution_preference is ImageResolutionPreference.MEDIUM

        assert (tmp_path / "covers" / filename).read_bytes() == content
        assert cache.get_path_for_url(URL) == details.location_ref

        attempt = provenance.attempts[0]
        assert attempt.source is ImageSourceName.LOCAL_CACHE
        assert attempt.status is ImageAttemptStatus.SUCCESS
        assert attempt.dimensions == "400x600"

    async def test_jpeg_extension_from_format(self, storage, provenance, httpx_mock) -> None:
        url = "https://books.google.com/books/content?id=x&img=1"
        httpx_mock.add_response(url=url, content=_image_bytes(300, 450, "JPEG"))

        details = await storage.store(url, "book-1", provenance, "GoogleBooks")

        assert details is not None
        assert details.location_ref.endswith(".jpg")

    async def test_large_image_is_marked_large(self, storage, provenance, httpx_mock) -> None:
        httpx_mock.add_response(url=URL, content=_image_bytes(800, 1200))
        details = await storage.store(URL, "book-1", provenance, "GoogleBooks")
        assert details is not None
        assert details.resolution_preference is ImageResolutionPreference.LARGE
        assert details.is_high_resolution

    async def test_second_store_reuses_file(self, storage, provenance, httpx_mock) -> None:
        httpx_mock.add_response(url=URL, content=_image_bytes(400, 600))

        first = await storage.store(URL, "book-1", provenance, "GoogleBooks")
        second_log = ProvenanceLog("book-1")
        second = await storage.store(URL, "book-1", second_log, "GoogleBooks")

        assert second == first
        assert len(httpx_mock.get_requests()) == 1
        assert second_log.attempts[0].status is ImageAttemptStatus.SUCCESS

    async def test_missing_file_is_downloaded_again(
        self, storage, cache, provenance, httpx_mock, tmp_path
    ) -> None:
        httpx_mock.add_response(url=URL, content=_image_bytes(400, 600))
        httpx_mock.add_response(url=URL, content=_image_bytes(400, 600))

        first = await storage.store(URL, "book-1", provenance, "GoogleBooks")
        assert first is not None
        (tmp_path / "covers" / first.location_ref.rsplit("/", 1)[1]).unlink()

        again = await storage.store(URL, "book-1", ProvenanceLog("book-1"), "GoogleBooks")

        assert again == first
        assert len(httpx_mock.get_requests()) == 2


class TestStoreFailures:
    """Every failure returns None and marks the URL bad."""

    async def test_known_bad_url_is_skipped(self, storage, cache, provenance, httpx_mock) -> None:
        cache.mark_url_bad(URL)

        assert await storage.store(URL, "book-1", provenance, "GoogleBooks") is None
        assert provenance.attempts[0].status is ImageAttemptStatus.SKIPPED_BAD_URL
        assert httpx_mock.get_requests() == []

    async def test_404(self, storage, cache, provenance, httpx_mock) -> None:
        httpx_mock.add_response(url=URL, status_code=404)

        assert await storage.store(URL, "book-1", provenance, "OpenLibrary") is None
        assert provenance.attempts[0].status is ImageAttemptStatus.FAILURE_404
        assert cache.is_known_bad_url(URL)

    async def test_server_error(self, storage, cache, provenance, httpx_mock) -> None:
        httpx_mock.add_response(url=URL, status_code=502)

        assert await storage.store(URL, "book-1", provenance, "OpenLibrary") is None
        assert provenance.attempts[0].status is ImageAttemptStatus.FAILURE_GENERIC_DOWNLOAD
        assert cache.is_known_bad_url(URL)

    async def test_timeout(self, storage, cache, provenance, httpx_mock) -> None:
        httpx_mock.add_exception(httpx.ReadTimeout("slow"), url=URL)

        assert await storage.store(URL, "book-1", provenance, "OpenLibrary") is None
        assert provenance.attempts[0].status is ImageAttemptStatus.FAILURE_TIMEOUT
        assert cache.is_known_bad_url(URL)

    async def test_transport_error(self, storage, provenance, httpx_mock) -> None:
        httpx_mock.add_exception(httpx.ConnectError("refused"), url=URL)

        assert await storage.store(URL, "book-1", provenance, "OpenLibrary") is None
        assert provenance.attempts[0].status is ImageAttemptStatus.FAILURE_GENERIC_DOWNLOAD

    async def test_not_an_image(self, storage, cache, provenance, httpx_mock) -> None:
        httpx_mock.add_response(url=URL, text="<html>nope</html>")

        assert await storage.store(URL, "book-1", provenance, "OpenLibrary") is None
        assert provenance.attempts[0].status is ImageAttemptStatus.FAILURE_INVALID_DETAILS
        assert cache.is_known_bad_url(URL)

    async def test_tracking_pixel(self, storage, cache, provenance, httpx_mock) -> None:
        httpx_mock.add_response(url=URL, content=_image_bytes(1, 1, "GIF"))

        assert await storage.store(URL, "book-1", provenance, "OpenLibrary") is None
        assert provenance.attempts[0].status is ImageAttemptStatus.FAILURE_PLACEHOLDER_DETECTED
        assert cache.is_known_bad_url(URL)

    async def test_too_small(self, storage, cache, provenance, httpx_mock, tmp_path) -> None:
        httpx_mock.add_response(url=URL, content=_image_bytes(100, 160))

        assert await storage.store(URL, "book-1", provenance, "OpenLibrary") is None
        assert provenance.attempts[0].status is ImageAttemptStatus.FAILURE_TOO_SMALL
        assert cache.is_known_bad_url(URL)
        assert not (tmp_path / "covers").exists() or not any((tmp_path / "covers").iterdir())

    async def test_too_large_download(self, cache, provenance, httpx_mock, tmp_path) -> None:
        storage = LocalDiskCoverStorage(cache, tmp_path, max_download_bytes=1024)
        httpx_mock.add_response(url=URL, content=b"x" * 2048)

        assert await storage.store(URL, "book-1", provenance, "OpenLibrary") is None
        assert provenance.attempts[0].status is ImageAttemptStatus.FAILURE_GENERIC_DOWNLOAD

    async def test_chunked_download_stops_at_the_limit(
        self, cache, provenance, httpx_mock, tmp_path
    ) -> None:
        """Without a Content-Length the body is cut off once it crosses the limit."""
        served: list[int] = []

        def chunks():
            for i in range(100):
                served.append(i)
                yield b"x" * 512

        storage = LocalDiskCoverStorage(cache, tmp_path, max_download_bytes=1024)
        httpx_mock.add_response(url=URL, stream=IteratorStream(chunks()))

        assert await storage.store(URL, "book-1", provenance, "OpenLibrary") is None
        assert provenance.attempts[0].status is ImageAttemptStatus.FAILURE_GENERIC_DOWNLOAD
        assert "too large" in provenance.attempts[0].failure_reason
        assert len(served) < 100
        assert cache.is_known_bad_url(URL)

    async def test_write_failure(self, cache, provenance, httpx_mock, tmp_path) -> None:
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("file in the way")
        storage = LocalDiskCoverStorage(cache, blocker / "covers")
        httpx_mock.add_response(url=URL, content=_image_bytes(400, 600))

        assert await storage.store(URL, "book-1", provenance, "OpenLibrary") is None
        assert provenance.attempts[0].status is ImageAttemptStatus.FAILURE_IO
        assert cache.is_known_bad_url(URL)
        assert cache.get_path_for_url(URL) is None
