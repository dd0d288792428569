"""Background workers."""

from coverspot.application.workers.cover_resolution_worker import CoverResolutionWorker

__all__ = ["CoverResolutionWorker"]
