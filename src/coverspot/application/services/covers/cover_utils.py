# Hey future me - shared cover helpers!
#
# Everything here is pure (no I/O, no cache access) so every layer can import it:
# - placeholder construction + detection
# - structural validation of ImageDetails
# - identifier key selection (ISBN-13 > ISBN-10 > id)
# - source inference from a URL
# - cache file naming
# - Google Books URL clean-up
"""Pure helper functions for cover resolution."""

from __future__ import annotations

import base64
import hashlib
import re
from pathlib import PurePosixPath
from urllib.parse import urlparse

from coverspot.domain.entities.book import Book
from coverspot.domain.value_objects.image_details import (
    MIN_VALID_DIMENSION,
    CoverImageSource,
    ImageDetails,
    ImageResolutionPreference,
)

LOCAL_PLACEHOLDER_PATH = "/images/placeholder-book-cover.svg"
SYSTEM_PLACEHOLDER_LABEL = "SYSTEM_PLACEHOLDER"

_REASON_SANITIZER = re.compile(r"[^a-zA-Z0-9-]")
_GOOGLE_FIFE = re.compile(r"([?&])fife=w\d+(-h\d+)?&?")
_GOOGLE_EDGE_CURL = re.compile(r"([?&])edge=curl&?", re.IGNORECASE)
_GOOGLE_PAGE = re.compile(r"[?&]pg=PA\d+", re.IGNORECASE)
_GOOGLE_ZOOM = re.compile(r"zoom=\d+")
_ISBN = re.compile(r"^(?:\d{9}[\dX]|\d{13})$")
_ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg"}


def create_placeholder(item_id: str | None, reason: str) -> ImageDetails:
    """Build the canonical placeholder descriptor.

    The reason ends up in source_system_id ("placeholder-<reason>-<item_id>") so
    a placeholder tells you why it was handed out.
    """
    safe_reason = _REASON_SANITIZER.sub("_", reason or "unknown")
    return ImageDetails(
        location_ref=LOCAL_PLACEHOLDER_PATH,
        source_label=SYSTEM_PLACEHOLDER_LABEL,
        source_system_id=f"placeholder-{safe_reason}-{item_id}",
        source_kind=CoverImageSource.LOCAL_CACHE,
        resolution_preference=ImageResolutionPreference.UNKNOWN,
    )


def is_placeholder(details: ImageDetails | None) -> bool:
    if details is None:
        return False
    return (
        details.location_ref == LOCAL_PLACEHOLDER_PATH
        or details.source_label == SYSTEM_PLACEHOLDER_LABEL
    )


def is_valid_image_details(details: ImageDetails | None) -> bool:
    """Structural check: a real location that isn't the placeholder.

    Dimensions are only checked when they're known - a freshly fetched remote
    descriptor legitimately has no dimensions yet.
    """
    if details is None or not details.location_ref:
        return False
    if is_placeholder(details):
        return False
    if details.dimensions_known and (
        details.width < MIN_VALID_DIMENSION or details.height < MIN_VALID_DIMENSION
    ):
        return False
    return True


def get_identifier_key(book: Book | None) -> str | None:
    """Cache key for a book: ISBN-13, then ISBN-10, then the internal id."""
    if book is None:
        return None
    return book.identifier_key


def looks_like_isbn(identifier: str | None) -> bool:
    """ISBN-10 or ISBN-13 shape, hyphens and spaces ignored. No checksum test."""
    if not identifier:
        return False
    return bool(_ISBN.match(identifier.replace("-", "").replace(" ", "").upper()))


def infer_source_from_url(url: str | None) -> CoverImageSource:
    if not url:
        return CoverImageSource.UNDEFINED
    lowered = url.lower()
    if "googleapis.com/books" in lowered or "books.google.com/books" in lowered:
        return CoverImageSource.GOOGLE_BOOKS
    if "openlibrary.org" in lowered:
        return CoverImageSource.OPEN_LIBRARY
    if "longitood.com" in lowered:
        return CoverImageSource.LONGITOOD
    if LOCAL_PLACEHOLDER_PATH in url:
        return CoverImageSource.LOCAL_CACHE
    return CoverImageSource.ANY


def file_extension_for_url(url: str, default: str = ".jpg") -> str:
    suffix = PurePosixPath(urlparse(url).path).suffix.lower()
    return suffix if suffix in _ALLOWED_EXTENSIONS else default


# Yo, same URL -> same file name, always. SHA-256 of the full URL, urlsafe base64 without
# padding, cut to 32 chars. Collisions at 192 bits are not a thing we worry about.
def cache_filename_for_url(url: str, extension: str | None = None) -> str:
    digest = hashlib.sha256(url.encode("utf-8")).digest()
    encoded = base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")
    return encoded[:32] + (extension or file_extension_for_url(url))


def is_likely_google_cover_url(url: str | None) -> bool:
    """False for Google Books page scans and curled-edge renders, True otherwise."""
    if not url:
        return False
    return not (_GOOGLE_PAGE.search(url) or _GOOGLE_EDGE_CURL.search(url))


def enhance_google_cover_url(url: str | None, zoom: int | None = None) -> str | None:
    """Force https, strip fife sizing and edge=curl, optionally pin the zoom level."""
    if url is None:
        return None

    enhanced = url
    if enhanced.startswith("http://"):
        enhanced = "https://" + enhanced[len("http://") :]

    enhanced = _GOOGLE_FIFE.sub(r"\1", enhanced)
    enhanced = _GOOGLE_EDGE_CURL.sub(r"\1", enhanced)
    enhanced = enhanced.rstrip("?&")

    if zoom is not None:
        if _GOOGLE_ZOOM.search(enhanced):
            enhanced = _GOOGLE_ZOOM.sub(f"zoom={zoom}", enhanced)
        else:
            enhanced += ("&" if "?" in enhanced else "?") + f"zoom={zoom}"
    return enhanced
