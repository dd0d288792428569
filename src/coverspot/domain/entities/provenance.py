"""Provenance log: the ordered record of every fetch attempt for one cover request.

Hey future me - a ProvenanceLog lives exactly as long as one resolution request. It's
created by whoever starts resolving a book, handed down to the orchestrator and the
storage adapter, and dropped once the result is delivered. Never share one between
requests. Attempts are appended in the order they are issued; nothing is ever removed.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from coverspot.domain.exceptions import InvalidStateError
from coverspot.domain.value_objects.image_details import ImageSourceName


class ImageAttemptStatus(Enum):
    """Outcome of one fetch attempt."""

    PENDING = "pending"
    SUCCESS = "success"
    SKIPPED_BAD_URL = "skipped_bad_url"
    FAILURE_NOT_FOUND = "failure_not_found"
    FAILURE_NO_URL_IN_RESPONSE = "failure_no_url_in_response"
    FAILURE_INVALID_DETAILS = "failure_invalid_details"
    FAILURE_GENERIC = "failure_generic"
    FAILURE_GENERIC_DOWNLOAD = "failure_generic_download"
    FAILURE_404 = "failure_404"
    FAILURE_TIMEOUT = "failure_timeout"
    FAILURE_TOO_SMALL = "failure_too_small"
    FAILURE_PLACEHOLDER_DETECTED = "failure_placeholder_detected"
    FAILURE_IO = "failure_io"

    @property
    def is_terminal(self) -> bool:
        return self is not ImageAttemptStatus.PENDING

    @property
    def is_failure(self) -> bool:
        return self.value.startswith("failure_")


@dataclass
class AttemptRecord:
    """One fetch attempt. Starts PENDING, moves to a terminal status exactly once."""

    source: ImageSourceName
    requested_locator: str | None
    status: ImageAttemptStatus = ImageAttemptStatus.PENDING
    failure_reason: str | None = None
    fetched_url: str | None = None
    dimensions: str | None = None
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    finished_at: datetime | None = None

    def succeed(
        self,
        fetched_url: str | None,
        width: int | None = None,
        height: int | None = None,
    ) -> None:
        """Mark the attempt successful. Dimensions are recorded only when both are given."""
        self._finish(ImageAttemptStatus.SUCCESS)
        self.fetched_url = fetched_url
        if width is not None and height is not None:
            self.dimensions = f"{width}x{height}"

    def fail(self, status: ImageAttemptStatus, reason: str | None = None) -> None:
        """Mark the attempt with a non-success terminal status."""
        if status in (ImageAttemptStatus.PENDING, ImageAttemptStatus.SUCCESS):
            raise InvalidStateError(f"fail() needs a failure/skip status, got {status.name}")
        self._finish(status)
        self.failure_reason = reason

    def _finish(self, status: ImageAttemptStatus) -> None:
        if self.status.is_terminal:
            raise InvalidStateError(
                f"Attempt for {self.requested_locator!r} already finished as {self.status.name}"
            )
        self.status = status
        self.finished_at = datetime.now(UTC)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source.value,
            "requested_locator": self.requested_locator,
            "status": self.status.name,
            "failure_reason": self.failure_reason,
            "fetched_url": self.fetched_url,
            "dimensions": self.dimensions,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


class ProvenanceLog:
    """Append-only list of AttemptRecords for one resolution request."""

    def __init__(self, item_id: str | None = None) -> None:
        self.item_id = item_id
        self._attempts: list[AttemptRecord] = []

    def start_attempt(
        self, source: ImageSourceName, requested_locator: str | None
    ) -> AttemptRecord:
        """Append a new PENDING attempt and return it for later completion."""
        attempt = AttemptRecord(source=source, requested_locator=requested_locator)
        self._attempts.append(attempt)
        return attempt

    @property
    def attempts(self) -> tuple[AttemptRecord, ...]:
        return tuple(self._attempts)

    @property
    def last_attempt(self) -> AttemptRecord | None:
        return self._attempts[-1] if self._attempts else None

    def __len__(self) -> int:
        return len(self._attempts)

    def __iter__(self) -> Iterator[AttemptRecord]:
        return iter(tuple(self._attempts))

    def __repr__(self) -> str:
        return f"ProvenanceLog(item_id={self.item_id!r}, attempts={len(self._attempts)})"

    def to_dict(self) -> dict[str, Any]:
        return {
            "item_id": self.item_id,
            "attempts": [attempt.to_dict() for attempt in self._attempts],
        }
