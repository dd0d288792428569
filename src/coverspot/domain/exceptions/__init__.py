"""Domain exceptions."""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, we store message as an attribute so code can inspect it without parsing
    # str(exception). Don't raise this directly - use a subclass so callers can catch precisely.
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class ValidationError(DomainException):
    """Raised when input data fails validation."""

    pass


class ConfigurationError(DomainException):
    """Raised when the service is misconfigured (bad provider name, unwritable dir...)."""

    pass


class InvalidStateError(DomainException):
    """Raised when an object is asked to do something its state forbids.

    Example: finishing a provenance attempt that already reached a terminal status.
    """

    pass


class ExternalServiceError(DomainException):
    """Raised when a remote cover provider or download target misbehaves."""

    # Yo, service is kept separate so logs and provenance can say WHICH provider broke
    # without string parsing. status_code is None for transport errors (DNS, reset, timeout).
    def __init__(
        self, service: str, message: str, status_code: int | None = None
    ) -> None:
        super().__init__(f"{service}: {message}")
        self.service = service
        self.status_code = status_code


class CircuitOpenError(ExternalServiceError):
    """Raised when a call is refused because the circuit breaker is open."""

    def __init__(self, service: str, retry_after: float | None = None) -> None:
        super().__init__(service, "circuit breaker is open")
        self.retry_after = retry_after


__all__ = [
    "CircuitOpenError",
    "ConfigurationError",
    "DomainException",
    "ExternalServiceError",
    "InvalidStateError",
    "ValidationError",
]
