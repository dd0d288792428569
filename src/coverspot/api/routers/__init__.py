"""API routers."""

from coverspot.api.routers.covers import router as covers_router

__all__ = ["covers_router"]
