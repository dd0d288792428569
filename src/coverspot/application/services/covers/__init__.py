# Future me note:
# This module is the CENTRAL place for all cover resolution logic.
#
# Layers, leaf first:
#   cover_utils.py         pure helpers (placeholder, validation, keys, URL tweaks)
#   fetch_helper.py        CoverFetchOrchestrator - ONE provider call, never raises
#   source_fetching.py     provisional hint + provider fallback chain
#   queue.py               bounded background job queue
#   cover_management.py    fast path + background job body (cache writes)
#   orchestration.py       BookImageOrchestrationService.get_best_cover() facade
"""coverspot cover services.

Usage:
    from coverspot.application.services.covers import BookImageOrchestrationService

    result = await facade.get_best_cover(book)
    result.cover_url  # immediately servable URL
"""

from coverspot.application.services.covers.cover_management import (
    BookCoverManagementService,
    InitialCover,
    determine_fallback_url,
)
from coverspot.application.services.covers.cover_utils import (
    LOCAL_PLACEHOLDER_PATH,
    SYSTEM_PLACEHOLDER_LABEL,
    create_placeholder,
    get_identifier_key,
    infer_source_from_url,
    is_placeholder,
    is_valid_image_details,
)
from coverspot.application.services.covers.fetch_helper import (
    CoverFetchOrchestrator,
    ValidationHooks,
)
from coverspot.application.services.covers.orchestration import (
    BookImageOrchestrationService,
)
from coverspot.application.services.covers.queue import (
    CoverResolutionJob,
    CoverResolutionQueue,
    ResolutionPriority,
)
from coverspot.application.services.covers.source_fetching import (
    CoverSourceFetchingService,
)

__all__ = [
    "LOCAL_PLACEHOLDER_PATH",
    "SYSTEM_PLACEHOLDER_LABEL",
    "BookCoverManagementService",
    "BookImageOrchestrationService",
    "CoverFetchOrchestrator",
    "CoverResolutionJob",
    "CoverResolutionQueue",
    "CoverSourceFetchingService",
    "InitialCover",
    "ResolutionPriority",
    "ValidationHooks",
    "create_placeholder",
    "determine_fallback_url",
    "get_identifier_key",
    "infer_source_from_url",
    "is_placeholder",
    "is_valid_image_details",
]
