"""HTTP API (FastAPI) for cover resolution."""

from coverspot.api.main import create_app

__all__ = ["create_app"]
