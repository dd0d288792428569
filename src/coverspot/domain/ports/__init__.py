"""Domain ports (interfaces implemented by infrastructure)."""

from coverspot.domain.ports.cover_storage import ICoverStorage
from coverspot.domain.ports.image_provider import ICoverProvider

__all__ = ["ICoverProvider", "ICoverStorage"]
