"""Remote cover provider adapters (ICoverProvider implementations)."""

from coverspot.infrastructure.providers.google_books_cover_provider import (
    GoogleBooksCoverProvider,
)
from coverspot.infrastructure.providers.longitood_cover_provider import (
    LongitoodCoverProvider,
)
from coverspot.infrastructure.providers.open_library_cover_provider import (
    OpenLibraryCoverProvider,
)
from coverspot.infrastructure.providers.resilient_provider import ResilientCoverProvider

__all__ = [
    "GoogleBooksCoverProvider",
    "LongitoodCoverProvider",
    "OpenLibraryCoverProvider",
    "ResilientCoverProvider",
]
