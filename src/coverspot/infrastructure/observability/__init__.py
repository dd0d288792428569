"""Observability infrastructure: structured logging and circuit breakers."""

from coverspot.infrastructure.observability.circuit_breaker import (
    CircuitBreaker,
    CircuitState,
    call,
    get_all_circuit_breaker_stats,
    get_circuit_breaker,
    reset_circuit_breakers,
)
from coverspot.infrastructure.observability.logging import (
    LogContextFilter,
    configure_logging,
    cover_job_context,
    get_correlation_id,
    set_correlation_id,
)
from coverspot.infrastructure.observability.middleware import CorrelationIdMiddleware

__all__ = [
    "CircuitBreaker",
    "CircuitState",
    "CorrelationIdMiddleware",
    "LogContextFilter",
    "call",
    "configure_logging",
    "cover_job_context",
    "get_all_circuit_breaker_stats",
    "get_circuit_breaker",
    "get_correlation_id",
    "reset_circuit_breakers",
    "set_correlation_id",
]
