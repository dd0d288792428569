"""Fetch-and-cache orchestration for ONE remote cover source.

Hey future me - this is the heart of the pipeline. resolve() runs a single provider
call through a fixed sequence and ALWAYS comes back with an ImageDetails:

    known-bad short-circuit -> remote fetch -> locator check -> URL validator
        -> storage -> structural/post-download validation -> success

Every failure branch marks the key bad (so we don't hammer a broken source for the
next 24h), records WHY in the provenance log, and returns a placeholder whose
source_system_id carries "<prefix>-<branch>". Nothing is raised to the caller except
cancellation. Multi-provider fallback is NOT done here - see source_fetching.py,
which calls resolve() once per provider.

The two awaits (remote fetch, storage) are the only suspension points. Both can be
bounded by a timeout; a timeout is handled exactly like the call raising.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from coverspot.application.services.covers.cover_utils import (
    create_placeholder,
    is_valid_image_details,
)
from coverspot.domain.entities.provenance import ImageAttemptStatus, ProvenanceLog
from coverspot.domain.ports.cover_storage import ICoverStorage
from coverspot.domain.value_objects.image_details import ImageDetails, ImageSourceName

logger = logging.getLogger(__name__)

RemoteFetch = Callable[[], Awaitable[ImageDetails | None]]
KnownBadPredicate = Callable[[str | None], bool]
KnownBadMarker = Callable[[str | None], None]

REASON_KNOWN_BAD = "Known bad cache key"
REASON_NOT_FOUND = "No ImageDetails returned from remote service"
REASON_NO_URL = "Remote response lacked URL"
REASON_URL_REJECTED = "URL rejected by validator"
REASON_CUSTOM_INVALID = "custom validator failed"
REASON_DOWNLOAD_INVALID = "downloaded image failed validation"


@dataclass(frozen=True)
class ValidationHooks:
    """Optional caller supplied checks.

    Attributes:
        url_validator: Runs on the remote locator before anything is downloaded
        post_download_validator: Consulted when the stored result failed the
            structural check, to tell "caller rejected it" from "download broke"
    """

    url_validator: Callable[[str], bool] | None = None
    post_download_validator: Callable[[ImageDetails | None], bool] | None = None


class CoverFetchOrchestrator:
    """Runs one provider call through the known-bad/fetch/validate/store pipeline."""

    def __init__(
        self,
        storage: ICoverStorage,
        fetch_timeout: float | None = None,
        store_timeout: float | None = None,
    ) -> None:
        self.storage = storage
        self.fetch_timeout = fetch_timeout
        self.store_timeout = store_timeout

    async def resolve(
        self,
        cache_key: str | None,
        is_known_bad: KnownBadPredicate,
        mark_known_bad: KnownBadMarker | None,
        remote_fetch: RemoteFetch,
        attempt_label: str,
        provider_kind: ImageSourceName,
        download_label: str,
        placeholder_reason_prefix: str,
        provenance: ProvenanceLog,
        item_id_for_log: str | None,
        hooks: ValidationHooks | None = None,
    ) -> ImageDetails:
        """Resolve one cover from one source. Never raises (except on cancellation).

        Args:
            cache_key: Key checked against / written to the negative cache (URL or ISBN)
            is_known_bad: Negative cache lookup for cache_key
            mark_known_bad: Negative cache writer, None if this key can't be marked
            remote_fetch: Zero-arg coroutine factory performing the provider call
            attempt_label: Human readable name for logs ("Google Books API")
            provider_kind: Source recorded in the provenance attempt
            download_label: Label handed to the storage adapter
            placeholder_reason_prefix: Prefix of the placeholder reason ("openlibrary")
            provenance: Log of the current resolution request
            item_id_for_log: Book id for logs and placeholder ids
            hooks: Optional URL / post-download validators

        Returns:
            Stored ImageDetails on success, a placeholder otherwise
        """
        hooks = hooks or ValidationHooks()
        attempt = provenance.start_attempt(provider_kind, cache_key)

        def fail(status: ImageAttemptStatus, reason: str, suffix: str) -> ImageDetails:
            attempt.fail(status, reason)
            return create_placeholder(item_id_for_log, f"{placeholder_reason_prefix}-{suffix}")

        def mark_bad() -> None:
            if cache_key and mark_known_bad is not None:
                mark_known_bad(cache_key)

        if cache_key and is_known_bad(cache_key):
            logger.debug(
                "%s: skipping known bad key %s (book %s)",
                attempt_label,
                cache_key,
                item_id_for_log,
            )
            return fail(ImageAttemptStatus.SKIPPED_BAD_URL, REASON_KNOWN_BAD, "known-bad")

        try:
            remote = await self._bounded(remote_fetch(), self.fetch_timeout)
        except Exception as e:
            logger.warning(
                "%s: fetch failed for key %s (book %s): %s",
                attempt_label,
                cache_key,
                item_id_for_log,
                _describe(e),
            )
            mark_bad()
            return fail(ImageAttemptStatus.FAILURE_GENERIC, _describe(e), "exception")

        if remote is None:
            logger.debug("%s: no image for key %s", attempt_label, cache_key)
            mark_bad()
            return fail(ImageAttemptStatus.FAILURE_NOT_FOUND, REASON_NOT_FOUND, "no-image")

        locator = remote.location_ref
        if not locator or not locator.strip():
            logger.debug("%s: response for key %s had no URL", attempt_label, cache_key)
            mark_bad()
            return fail(ImageAttemptStatus.FAILURE_NO_URL_IN_RESPONSE, REASON_NO_URL, "no-url")

        if hooks.url_validator is not None and not hooks.url_validator(locator):
            logger.debug("%s: URL rejected by validator: %s", attempt_label, locator)
            mark_bad()
            return fail(
                ImageAttemptStatus.FAILURE_INVALID_DETAILS, REASON_URL_REJECTED, "invalid-url"
            )

        try:
            stored = await self._bounded(
                self.storage.store(locator, item_id_for_log, provenance, download_label),
                self.store_timeout,
            )
        except Exception as e:
            logger.warning(
                "%s: storing %s failed (book %s): %s",
                attempt_label,
                locator,
                item_id_for_log,
                _describe(e),
            )
            mark_bad()
            return fail(ImageAttemptStatus.FAILURE_GENERIC, _describe(e), "exception")

        if not is_valid_image_details(stored):
            mark_bad()
            post_validator = hooks.post_download_validator
            if post_validator is not None and not post_validator(stored):
                return fail(
                    ImageAttemptStatus.FAILURE_INVALID_DETAILS,
                    REASON_CUSTOM_INVALID,
                    "custom-invalid",
                )
            return fail(
                ImageAttemptStatus.FAILURE_INVALID_DETAILS, REASON_DOWNLOAD_INVALID, "dl-fail"
            )

        assert stored is not None
        if stored.dimensions_known:
            attempt.succeed(locator, stored.width, stored.height)
        else:
            attempt.succeed(locator)
        logger.info(
            "%s: resolved cover for book %s -> %s",
            attempt_label,
            item_id_for_log,
            stored.location_ref,
        )
        return stored

    @staticmethod
    async def _bounded[T](awaitable: Awaitable[T], timeout: float | None) -> T:
        if timeout is None:
            return await awaitable
        return await asyncio.wait_for(awaitable, timeout=timeout)


def _describe(error: BaseException) -> str:
    if isinstance(error, TimeoutError):
        return f"Timed out: {error}" if str(error) else "Timed out"
    return str(error) or type(error).__name__
