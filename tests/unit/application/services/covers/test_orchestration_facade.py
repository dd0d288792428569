"""Tests for BookImageOrchestrationService - the public resolution facade."""

import pytest

from coverspot.application.cache.cover_cache import CoverCacheManager
from coverspot.application.services.covers import (
    LOCAL_PLACEHOLDER_PATH,
    BookCoverManagementService,
    BookImageOrchestrationService,
    CoverFetchOrchestrator,
    CoverResolutionQueue,
    CoverSourceFetchingService,
)
from coverspot.application.services.covers.orchestration import NULL_BOOK_ID, NULL_BOOK_TITLE
from coverspot.domain.entities import Book, CoverState
from coverspot.domain.ports import ICoverProvider, ICoverStorage
from coverspot.domain.value_objects import (
    CoverImageSource,
    ImageDetails,
    ImageResolutionPreference,
)

ISBN = "9780000000002"
REMOTE = "https://covers.openlibrary.org/b/isbn/9780000000002-L.jpg?default=false"


class StaticProvider(ICoverProvider):
    def __init__(self) -> None:
        self.calls = 0

    @property
    def source(self) -> CoverImageSource:
        return CoverImageSource.OPEN_LIBRARY

    async def fetch(self, identifier, resolution=ImageResolutionPreference.ANY):
        self.calls += 1
        return ImageDetails(REMOTE, "OpenLibrary", identifier, CoverImageSource.OPEN_LIBRARY)


class SizedStorage(ICoverStorage):
    async def store(self, locator, item_id_for_log, provenance, label):
        return ImageDetails(
            "/book-covers/ol.jpg", label, item_id_for_log, CoverImageSource.LOCAL_CACHE
        ).with_dimensions(600, 900)


@pytest.fixture
def provider() -> StaticProvider:
    return StaticProvider()


@pytest.fixture
def queue() -> CoverResolutionQueue:
    return CoverResolutionQueue(max_size=10)


@pytest.fixture
def management(provider, queue) -> BookCoverManagementService:
    cache = CoverCacheManager()
    fetching = CoverSourceFetchingService(
        cache, CoverFetchOrchestrator(SizedStorage()), [provider]
    )
    return BookCoverManagementService(cache, fetching, queue)


@pytest.fixture
def facade(management) -> BookImageOrchestrationService:
    return BookImageOrchestrationService(management)


class TestGetBestCoverEdgeCases:
    async def test_none_book_gets_placeholder_book(self, facade, queue) -> None:
        result = await facade.get_best_cover(None)

        assert result.state is CoverState.UNRESOLVED
        assert result.book.id == NULL_BOOK_ID
        assert result.book.title == NULL_BOOK_TITLE
        assert result.cover_url == LOCAL_PLACEHOLDER_PATH
        assert result.fallback_url == LOCAL_PLACEHOLDER_PATH
        assert result.book.cover_width == 0
        assert result.book.is_cover_high_resolution is False
        assert queue.is_empty()

    async def test_book_without_id_gets_placeholder(self, facade, queue) -> None:
        book = Book(id=None, title="Anonymous", isbn13=ISBN)

        result = await facade.get_best_cover(book)

        assert result.state is CoverState.UNRESOLVED
        assert result.book is not book
        assert result.book.title == "Anonymous"
        assert result.cover_url == LOCAL_PLACEHOLDER_PATH
        assert book.cover_image_url is None
        assert queue.is_empty()


class TestGetBestCoverLifecycle:
    """Provisional first, resolved after the background job ran."""

    async def test_first_call_is_provisional_then_resolved(
        self, facade, management, queue, provider
    ) -> None:
        book = Book(id="book-1", title="Dune", isbn13=ISBN)

        first = await facade.get_best_cover(book)

        assert first.state is CoverState.PROVISIONAL
        assert first.cover_url == LOCAL_PLACEHOLDER_PATH
        assert first.book.cover_width is None
        assert first.book.is_cover_high_resolution is None
        assert provider.calls == 0

        job = queue.get_nowait()
        assert job is not None
        assert await management.process_cover_in_background(job) is CoverState.RESOLVED
        queue.mark_done(job)

        second = await facade.get_best_cover(book)

        assert second.state is CoverState.RESOLVED
        assert second.cover_url == "/book-covers/ol.jpg"
        assert second.fallback_url == LOCAL_PLACEHOLDER_PATH
        assert (second.book.cover_width, second.book.cover_height) == (600, 900)
        assert second.book.is_cover_high_resolution is True
        assert queue.is_empty()

    async def test_fallback_comes_from_book(self, facade) -> None:
        book = Book(id="book-1", isbn13=ISBN, image_url="https://x/secondary.jpg")

        result = await facade.get_best_cover(book)

        assert result.cover_url == "https://x/secondary.jpg"
        assert result.fallback_url == "https://x/secondary.jpg"

    async def test_caller_book_is_not_modified(self, facade) -> None:
        book = Book(id="book-1", isbn13=ISBN, cover_image_url="https://x/c.jpg")
        result = await facade.get_best_cover(book)
        assert result.book is not book
        assert book.cover_images is None

    async def test_repeated_calls_are_idempotent(self, facade, queue) -> None:
        book = Book(id="book-1", isbn13=ISBN, cover_image_url="https://x/c.jpg")

        first = await facade.get_best_cover(book)
        second = await facade.get_best_cover(book)

        assert first == second
        assert queue.get_stats()["submitted"] == 1
