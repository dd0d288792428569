# Hey future me - Cover Resolution Worker drains the cover resolution queue!
#
# Runs PERMANENTLY while the app is up (started/stopped by the FastAPI lifespan).
# It wakes up as soon as a job lands in the queue via queue.get().
#
# Key Features:
# - Bounded pool: exactly max_concurrent loops pull from the same queue
# - Graceful shutdown with a drain timeout; whatever is still in flight after that
#   is cancelled (cache writes are atomic per key, so nothing half-written survives)
# - One failing job never stops the loop
# - Stats for the /api/covers/_stats endpoint
"""Cover Resolution Worker - runs background cover resolutions."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

from coverspot.application.services.covers.queue import (
    CoverResolutionJob,
    CoverResolutionQueue,
)
from coverspot.domain.entities.book import CoverState
from coverspot.infrastructure.observability.logging import cover_job_context

logger = logging.getLogger(__name__)

JobHandler = Callable[[CoverResolutionJob], Awaitable[CoverState]]


class CoverResolutionWorker:
    """Bounded pool of tasks processing CoverResolutionJobs.

    The handler is BookCoverManagementService.process_cover_in_background - a job's
    only effect is the cache write it performs.

    Usage:
        worker = CoverResolutionWorker(queue, management.process_cover_in_background)
        await worker.start()
        # ... jobs get processed in the background ...
        await worker.stop()
    """

    def __init__(
        self,
        queue: CoverResolutionQueue,
        handler: JobHandler,
        max_concurrent: int = 4,
        poll_interval: float = 1.0,
    ) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")
        self._queue = queue
        self._handler = handler
        self._concurrency = max_concurrent
        self._poll_interval = poll_interval
        self._running = False
        self._tasks: list[asyncio.Task[None]] = []
        self._stats: dict[str, int] = {
            "processed": 0,
            "resolved": 0,
            "still_provisional": 0,
            "errors": 0,
        }
        self._started_at: datetime | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start max_concurrent processing loops."""
        if self._running:
            logger.warning("CoverResolutionWorker already running")
            return

        self._running = True
        self._started_at = datetime.now(UTC)
        for i in range(self._concurrency):
            task = asyncio.create_task(self._process_loop(worker_id=i), name=f"cover-worker-{i}")
            self._tasks.append(task)

        logger.info("CoverResolutionWorker started with %d concurrent workers", self._concurrency)

    async def stop(self, drain_timeout: float = 5.0) -> None:
        """Stop gracefully: let queued jobs finish for up to drain_timeout, then cancel."""
        if not self._running:
            return

        logger.info("CoverResolutionWorker stopping...")

        # pending counts queued AND in-flight jobs
        pending = self._queue.get_stats()["pending"]
        if pending and drain_timeout > 0:
            logger.info("Waiting for %d remaining cover jobs...", pending)
            await self._queue.drain(timeout=drain_timeout)

        self._running = False
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task

        self._tasks.clear()
        logger.info(
            "CoverResolutionWorker stopped. Stats: %d processed, %d resolved, %d errors",
            self._stats["processed"],
            self._stats["resolved"],
            self._stats["errors"],
        )

    async def _process_loop(self, worker_id: int) -> None:
        logger.debug("Cover worker %d started", worker_id)

        while self._running:
            try:
                # Timeout lets us re-check self._running periodically
                job = await asyncio.wait_for(self._queue.get(), timeout=self._poll_interval)
            except TimeoutError:
                continue

            success = False
            try:
                success = await self._process_job(job, worker_id)
            finally:
                self._queue.mark_done(job, success=success)

        logger.debug("Cover worker %d stopped", worker_id)

    async def _process_job(self, job: CoverResolutionJob, worker_id: int) -> bool:
        self._stats["processed"] += 1
        try:
            with cover_job_context(job.identifier):
                state = await self._handler(job)
        except Exception as e:
            self._stats["errors"] += 1
            logger.error(
                "Cover worker %d: error resolving %s: %s", worker_id, job.identifier, e
            )
            return False

        # "No cover found" is a normal outcome, only a raising handler is a queue error
        if state is CoverState.RESOLVED:
            self._stats["resolved"] += 1
        else:
            self._stats["still_provisional"] += 1
        return True

    def get_stats(self) -> dict[str, Any]:
        return {
            **self._stats,
            "running": self._running,
            "workers": len(self._tasks),
            "max_concurrent": self._concurrency,
            "started_at": self._started_at.isoformat() if self._started_at else None,
        }
