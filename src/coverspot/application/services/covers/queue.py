# Hey future me - Cover Resolution Queue for background cover lookups!
#
# The resolution facade hands a book to this queue and returns to the caller right away.
# CoverResolutionWorker pulls jobs and runs BookCoverManagementService.process_cover_in_background(),
# whose ONLY observable effect is a cache write (final details + provisional invalidation).
#
# Why a bounded queue instead of asyncio.create_task() per request?
# 1. Bounded memory: a request storm can't spawn thousands of tasks
# 2. Bounded concurrency: the worker pool caps parallel provider calls
# 3. Deduplication: the same identifier is never queued twice at once
#
# Flow:
#   BookImageOrchestrationService.get_best_cover()
#       └─► BookCoverManagementService.get_initial_cover()
#           └─► queue.submit(CoverResolutionJob(...))        (never blocks)
#               └─► CoverResolutionWorker._process_loop()
#                   └─► process_cover_in_background(job)    (cache write)
"""Cover Resolution Queue - bounded queue of background cover resolutions."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import IntEnum
from typing import Any

from coverspot.domain.entities.book import Book
from coverspot.domain.value_objects.image_details import (
    CoverImageSource,
    ImageResolutionPreference,
)

logger = logging.getLogger(__name__)


class ResolutionPriority(IntEnum):
    """Lower number = processed first."""

    HIGH = 0  # Interactive request for a single book
    NORMAL = 1  # Regular page render
    LOW = 2  # Warm-up / backfill


@dataclass(order=True)
class CoverResolutionJob:
    """Job for the cover resolution queue.

    Hey future me - this is a PriorityQueue item! order=True compares by field order,
    so jobs sort by priority, then created_at. Everything else has compare=False.
    """

    priority: int = field(compare=True)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC), compare=True)

    identifier: str = field(default="", compare=False)
    book: Book | None = field(default=None, compare=False)
    preferred_source: CoverImageSource = field(default=CoverImageSource.ANY, compare=False)
    resolution: ImageResolutionPreference = field(
        default=ImageResolutionPreference.ANY, compare=False
    )
    provisional_hint: str | None = field(default=None, compare=False)

    @classmethod
    def for_book(
        cls,
        book: Book,
        identifier: str,
        preferred_source: CoverImageSource = CoverImageSource.ANY,
        resolution: ImageResolutionPreference = ImageResolutionPreference.ANY,
        provisional_hint: str | None = None,
        priority: int = ResolutionPriority.NORMAL,
    ) -> CoverResolutionJob:
        return cls(
            priority=priority,
            identifier=identifier,
            book=book,
            preferred_source=preferred_source,
            resolution=resolution,
            provisional_hint=provisional_hint,
        )


class CoverResolutionQueue:
    """Bounded, deduplicating async priority queue of cover resolutions.

    submit() is synchronous and never waits: when the queue is full the job is
    dropped (the provisional URL stays in place and the next request for the
    book submits again). Must be used from the event loop thread.

    Usage:
        queue = CoverResolutionQueue(max_size=500)
        queue.submit(CoverResolutionJob.for_book(book, "9780131103627"))

        job = await queue.get()  # worker side
        ...
        queue.mark_done(job)
    """

    def __init__(self, max_size: int = 500) -> None:
        self._queue: asyncio.PriorityQueue[CoverResolutionJob] = asyncio.PriorityQueue(
            maxsize=max_size
        )
        self._pending: set[str] = set()  # identifiers queued or in flight
        self._stats: dict[str, int] = {
            "submitted": 0,
            "processed": 0,
            "duplicates_skipped": 0,
            "dropped_full": 0,
            "errors": 0,
        }

    @property
    def max_size(self) -> int:
        return self._queue.maxsize

    def submit(self, job: CoverResolutionJob) -> bool:
        """Add job to queue without blocking.

        Returns:
            True if enqueued, False if duplicate or queue full
        """
        key = job.identifier
        if key in self._pending:
            self._stats["duplicates_skipped"] += 1
            logger.debug("Skipping duplicate cover job: %s", key)
            return False

        try:
            self._queue.put_nowait(job)
        except asyncio.QueueFull:
            self._stats["dropped_full"] += 1
            logger.warning("Cover resolution queue is full, dropping job: %s", key)
            return False

        self._pending.add(key)
        self._stats["submitted"] += 1
        logger.debug(
            "Queued cover job: %s (priority=%d, queue_size=%d)",
            key,
            job.priority,
            self._queue.qsize(),
        )
        return True

    async def get(self) -> CoverResolutionJob:
        """Get next job, highest priority first. Blocks until one is available."""
        return await self._queue.get()

    def get_nowait(self) -> CoverResolutionJob | None:
        try:
            return self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None

    def mark_done(self, job: CoverResolutionJob, success: bool = True) -> None:
        """Mark job as processed. Must be called once per job taken from the queue!"""
        self._pending.discard(job.identifier)
        self._stats["processed"] += 1
        if not success:
            self._stats["errors"] += 1
        self._queue.task_done()

    def is_pending(self, identifier: str) -> bool:
        return identifier in self._pending

    def get_stats(self) -> dict[str, Any]:
        return {
            **self._stats,
            "pending": len(self._pending),
            "queue_size": self._queue.qsize(),
            "max_size": self._queue.maxsize,
        }

    def is_empty(self) -> bool:
        return self._queue.empty()

    async def drain(self, timeout: float = 5.0) -> bool:
        """Wait for all queued jobs to be marked done.

        Returns:
            True if the queue emptied, False on timeout
        """
        try:
            await asyncio.wait_for(self._queue.join(), timeout=timeout)
            return True
        except TimeoutError:
            logger.warning(
                "Cover queue drain timeout after %.1fs, %d jobs remaining",
                timeout,
                self._queue.qsize(),
            )
            return False

    def clear(self) -> int:
        """Drop every queued job. Returns the number dropped."""
        cleared = 0
        while True:
            try:
                job = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            self._pending.discard(job.identifier)
            self._queue.task_done()
            cleared += 1

        logger.info("Cleared %d jobs from cover queue", cleared)
        return cleared
