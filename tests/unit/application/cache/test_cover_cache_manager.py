"""Tests for CoverCacheManager."""

from coverspot.application.cache.cover_cache import CoverCacheManager
from coverspot.config.settings import CoverCacheSettings
from coverspot.domain.value_objects import CoverImageSource, ImageDetails

# Hey future me - the TTLs below are the defaults from CoverCacheSettings:
# path 1d after access, provisional 6h after write, final 7d after access, bad 24h after write.

HOUR = 3600.0
DAY = 24 * HOUR


class TestCoverCacheManagerPositiveCaches:
    """path_by_url, provisional_url and final_details."""

    def test_path_for_url_roundtrip(self, fake_clock) -> None:
        cache = CoverCacheManager(clock=fake_clock)
        cache.put_path_for_url("https://x/a.jpg", "/book-covers/abc.jpg")
        assert cache.get_path_for_url("https://x/a.jpg") == "/book-covers/abc.jpg"

    def test_empty_keys_are_misses(self) -> None:
        cache = CoverCacheManager()
        assert cache.get_path_for_url(None) is None
        assert cache.get_path_for_url("") is None
        assert cache.get_provisional_url(None) is None
        assert cache.get_final_details("") is None

    def test_provisional_url_expires_six_hours_after_write(self, fake_clock) -> None:
        cache = CoverCacheManager(clock=fake_clock)
        cache.put_provisional_url("978", "https://x/p.jpg")
        fake_clock.advance(5 * HOUR)
        assert cache.get_provisional_url("978") == "https://x/p.jpg"
        fake_clock.advance(1 * HOUR)
        assert cache.get_provisional_url("978") is None

    def test_final_details_expire_seven_days_after_last_access(self, fake_clock) -> None:
        cache = CoverCacheManager(clock=fake_clock)
        details = ImageDetails("/book-covers/a.jpg").with_dimensions(400, 600)
        cache.put_final_details("978", details)

        fake_clock.advance(6 * DAY)
        assert cache.get_final_details("978") is details
        fake_clock.advance(6 * DAY)
        assert cache.get_final_details("978") is details
        fake_clock.advance(7 * DAY)
        assert cache.get_final_details("978") is None

    def test_invalidate_provisional_and_final(self) -> None:
        cache = CoverCacheManager()
        cache.put_provisional_url("978", "https://x/p.jpg")
        cache.put_final_details("978", ImageDetails("/book-covers/a.jpg"))
        cache.invalidate_provisional_url("978")
        cache.invalidate_final_details("978")
        assert cache.get_provisional_url("978") is None
        assert cache.get_final_details("978") is None

    def test_custom_capacities(self) -> None:
        cache = CoverCacheManager(CoverCacheSettings(final_details_capacity=2))
        for isbn in ("1", "2", "3"):
            cache.put_final_details(isbn, ImageDetails(f"/book-covers/{isbn}.jpg"))
        assert cache.get_final_details("1") is None
        assert cache.get_final_details("3") is not None


class TestCoverCacheManagerNegativeCaches:
    """bad_urls and per-provider bad identifiers."""

    def test_mark_url_bad(self) -> None:
        cache = CoverCacheManager()
        assert not cache.is_known_bad_url("https://x/bad.jpg")
        cache.mark_url_bad("https://x/bad.jpg")
        assert cache.is_known_bad_url("https://x/bad.jpg")

    def test_empty_url_is_never_bad(self) -> None:
        cache = CoverCacheManager()
        cache.mark_url_bad("")
        cache.mark_url_bad(None)
        assert not cache.is_known_bad_url("")
        assert not cache.is_known_bad_url(None)

    def test_bad_url_marker_expires_after_a_day(self, fake_clock) -> None:
        cache = CoverCacheManager(clock=fake_clock)
        cache.mark_url_bad("https://x/bad.jpg")
        fake_clock.advance(23 * HOUR)
        assert cache.is_known_bad_url("https://x/bad.jpg")
        fake_clock.advance(1 * HOUR)
        assert not cache.is_known_bad_url("https://x/bad.jpg")

    def test_bad_identifiers_are_per_provider(self) -> None:
        cache = CoverCacheManager()
        cache.mark_identifier_bad(CoverImageSource.GOOGLE_BOOKS, "978")
        assert cache.is_known_bad_identifier(CoverImageSource.GOOGLE_BOOKS, "978")
        assert not cache.is_known_bad_identifier(CoverImageSource.OPEN_LIBRARY, "978")

    def test_checker_and_marker_are_bound_to_provider(self) -> None:
        cache = CoverCacheManager()
        is_bad = cache.known_bad_checker(CoverImageSource.LONGITOOD)
        mark_bad = cache.known_bad_marker(CoverImageSource.LONGITOOD)

        assert not is_bad("978")
        mark_bad("978")
        assert is_bad("978")
        assert not is_bad(None)
        assert cache.is_known_bad_identifier(CoverImageSource.LONGITOOD, "978")


class TestCoverCacheManagerHousekeeping:
    """clear, cleanup and stats across all caches."""

    def test_clear_empties_everything(self) -> None:
        cache = CoverCacheManager()
        cache.put_path_for_url("u", "/p")
        cache.mark_url_bad("bad")
        cache.mark_identifier_bad(CoverImageSource.GOOGLE_BOOKS, "978")
        cache.clear()
        assert cache.get_path_for_url("u") is None
        assert not cache.is_known_bad_url("bad")
        assert not cache.is_known_bad_identifier(CoverImageSource.GOOGLE_BOOKS, "978")

    def test_stats_include_provider_caches(self) -> None:
        cache = CoverCacheManager()
        cache.mark_identifier_bad(CoverImageSource.OPEN_LIBRARY, "978")
        stats = cache.get_stats()
        assert {"path_by_url", "provisional_url", "final_details", "bad_urls"} <= set(stats)
        assert stats["bad_identifiers:open_library"]["size"] == 1

    def test_cleanup_expired_counts_all_caches(self, fake_clock) -> None:
        cache = CoverCacheManager(clock=fake_clock)
        cache.put_provisional_url("978", "https://x/p.jpg")
        cache.mark_url_bad("https://x/bad.jpg")
        fake_clock.advance(25 * HOUR)
        assert cache.cleanup_expired() == 2
