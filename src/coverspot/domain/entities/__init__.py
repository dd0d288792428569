"""Domain entities."""

from coverspot.domain.entities.book import Book, CoverResult, CoverState
from coverspot.domain.entities.provenance import (
    AttemptRecord,
    ImageAttemptStatus,
    ProvenanceLog,
)

__all__ = [
    "AttemptRecord",
    "Book",
    "CoverResult",
    "CoverState",
    "ImageAttemptStatus",
    "ProvenanceLog",
]
