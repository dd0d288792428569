"""Tests for GoogleBooksCoverProvider."""

import re

import httpx
import pytest

from coverspot.domain.exceptions import ExternalServiceError
from coverspot.domain.value_objects import CoverImageSource, ImageResolutionPreference
from coverspot.infrastructure.integrations.http_pool import HttpClientPool
from coverspot.infrastructure.providers import GoogleBooksCoverProvider

ISBN = "9780441172719"
VOLUMES = re.compile(r"https://www\.googleapis\.com/books/v1/volumes\?.*")
THUMB = "http://books.google.com/books/content?id=B1hSG45JCX4C&printsec=frontcover&img=1&zoom=1&edge=curl&source=gbs_api"
SMALL_THUMB = "http://books.google.com/books/content?id=B1hSG45JCX4C&printsec=frontcover&img=1&zoom=5&source=gbs_api"


def _volume(image_links: dict[str, str] | None) -> dict:
    info: dict = {"title": "Dune"}
    if image_links is not None:
        info["imageLinks"] = image_links
    return {"totalItems": 1, "items": [{"id": "B1hSG45JCX4C", "volumeInfo": info}]}


@pytest.fixture(autouse=True)
async def close_pool():
    yield
    await HttpClientPool.close()


@pytest.fixture
def provider() -> GoogleBooksCoverProvider:
    return GoogleBooksCoverProvider()


class TestGoogleBooksCoverProvider:
    """Volume lookup and imageLinks selection."""

    async def test_source(self, provider) -> None:
        assert provider.source is CoverImageSource.GOOGLE_BOOKS
        assert provider.provider_name.value == "GoogleBooks"

    async def test_returns_enhanced_thumbnail(self, provider, httpx_mock) -> None:
        httpx_mock.add_response(
            url=VOLUMES, json=_volume({"smallThumbnail": SMALL_THUMB, "thumbnail": THUMB})
        )

        details = await provider.fetch(ISBN)

        assert details is not None
        assert details.location_ref.startswith("https://books.google.com/books/content")
        assert "edge=curl" not in details.location_ref
        assert details.source_label == "GoogleBooks"
        assert details.source_system_id == "B1hSG45JCX4C"
        assert details.source_kind is CoverImageSource.GOOGLE_BOOKS
        assert details.resolution_preference is ImageResolutionPreference.SMALL
        request = httpx_mock.get_request()
        assert request.url.params["q"] == f"isbn:{ISBN}"
        assert "key" not in request.url.params

    async def test_prefers_largest_size(self, provider, httpx_mock) -> None:
        large = "https://books.google.com/books/content?id=B1&img=1&zoom=3"
        httpx_mock.add_response(
            url=VOLUMES, json=_volume({"thumbnail": THUMB, "large": large})
        )

        details = await provider.fetch(ISBN)

        assert details is not None
        assert details.location_ref == large
        assert details.resolution_preference is ImageResolutionPreference.LARGE

    async def test_small_preference_walks_small_first(self, provider, httpx_mock) -> None:
        large = "https://books.google.com/books/content?id=B1&img=1&zoom=3"
        httpx_mock.add_response(
            url=VOLUMES, json=_volume({"thumbnail": THUMB, "large": large})
        )

        details = await provider.fetch(ISBN, ImageResolutionPreference.SMALL)

        assert details is not None
        assert "zoom=1" in details.location_ref

    async def test_skips_page_scans(self, provider, httpx_mock) -> None:
        page = "https://books.google.com/books/content?id=B1&pg=PA1&img=1"
        httpx_mock.add_response(
            url=VOLUMES, json=_volume({"large": page, "thumbnail": THUMB})
        )

        details = await provider.fetch(ISBN)

        assert details is not None
        assert "pg=PA" not in details.location_ref

    async def test_api_key_is_sent(self, httpx_mock) -> None:
        httpx_mock.add_response(url=VOLUMES, json={"totalItems": 0})

        await GoogleBooksCoverProvider(api_key="secret").fetch(ISBN)

        assert httpx_mock.get_request().url.params["key"] == "secret"

    @pytest.mark.parametrize(
        "payload", [{"totalItems": 0}, _volume(None), _volume({})]
    )
    async def test_nothing_usable_returns_none(self, provider, httpx_mock, payload) -> None:
        httpx_mock.add_response(url=VOLUMES, json=payload)
        assert await provider.fetch(ISBN) is None

    async def test_404_returns_none(self, provider, httpx_mock) -> None:
        httpx_mock.add_response(url=VOLUMES, status_code=404)
        assert await provider.fetch(ISBN) is None

    async def test_server_error_raises(self, provider, httpx_mock) -> None:
        httpx_mock.add_response(url=VOLUMES, status_code=503)
        with pytest.raises(ExternalServiceError) as exc_info:
            await provider.fetch(ISBN)
        assert exc_info.value.service == "google_books"
        assert exc_info.value.status_code == 503

    async def test_transport_error_raises(self, provider, httpx_mock) -> None:
        httpx_mock.add_exception(httpx.ConnectError("refused"), url=VOLUMES)
        with pytest.raises(ExternalServiceError):
            await provider.fetch(ISBN)

    async def test_non_json_raises(self, provider, httpx_mock) -> None:
        httpx_mock.add_response(url=VOLUMES, text="<html>quota</html>")
        with pytest.raises(ExternalServiceError):
            await provider.fetch(ISBN)


class TestVolumeIdLookup:
    """Books without an ISBN are looked up by their Google volume id."""

    VOLUME_URL = "https://www.googleapis.com/books/v1/volumes/B1hSG45JCX4C"

    async def test_volume_id_uses_volume_endpoint(self, provider, httpx_mock) -> None:
        httpx_mock.add_response(
            url=self.VOLUME_URL,
            json={"id": "B1hSG45JCX4C", "volumeInfo": {"imageLinks": {"thumbnail": THUMB}}},
        )

        details = await provider.fetch("B1hSG45JCX4C")

        assert details is not None
        assert details.source_system_id == "B1hSG45JCX4C"
        assert details.location_ref.startswith("https://books.google.com/books/content")
        assert "q" not in httpx_mock.get_request().url.params

    async def test_volume_id_sends_api_key(self, httpx_mock) -> None:
        httpx_mock.add_response(url=re.compile(re.escape(self.VOLUME_URL) + r"\?.*"), json={})

        await GoogleBooksCoverProvider(api_key="secret").fetch("B1hSG45JCX4C")

        assert httpx_mock.get_request().url.params["key"] == "secret"

    async def test_unknown_volume_returns_none(self, provider, httpx_mock) -> None:
        httpx_mock.add_response(url=self.VOLUME_URL, status_code=404)
        assert await provider.fetch("B1hSG45JCX4C") is None

    async def test_isbn10_with_check_digit_x_is_an_isbn(self, provider, httpx_mock) -> None:
        httpx_mock.add_response(url=VOLUMES, json={"totalItems": 0})

        await provider.fetch("080442957X")

        assert httpx_mock.get_request().url.params["q"] == "isbn:080442957X"
