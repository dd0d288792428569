"""Dependency injection for API endpoints."""

import logging
from typing import cast

from fastapi import Depends, HTTPException, Request

from coverspot.application.services.covers import BookImageOrchestrationService
from coverspot.infrastructure.container import CoverServices

logger = logging.getLogger(__name__)


# Hey future me, the container is built in the lifespan (see main.py) and attached to
# app.state.covers. If it isn't there the startup failed or hasn't run - return 503
# instead of crashing with AttributeError.
def get_cover_services(request: Request) -> CoverServices:
    """Get the wired cover pipeline from app state.

    Raises:
        HTTPException: 503 if the pipeline is not initialized
    """
    if not hasattr(request.app.state, "covers"):
        raise HTTPException(
            status_code=503,
            detail="Cover services not initialized",
        )
    return cast(CoverServices, request.app.state.covers)


def get_cover_facade(
    services: CoverServices = Depends(get_cover_services),
) -> BookImageOrchestrationService:
    """Get the cover resolution facade."""
    return services.facade
