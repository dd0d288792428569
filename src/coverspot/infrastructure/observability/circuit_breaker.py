"""Circuit breaker + timeout wrapper for remote provider calls.

Hey future me - this is plain composition, no decorators-with-magic. Wrap any zero-arg
coroutine factory:

    breaker = get_circuit_breaker("google_books", failure_threshold=5)
    details = await breaker.call(lambda: client.lookup(isbn), timeout=10.0)

States:
    CLOSED     calls go through; consecutive failures are counted
    OPEN       failure_threshold reached; calls are refused until reset_timeout passes
    HALF_OPEN  reset_timeout passed; the next success closes, a failure re-opens

Failures = the call raising OR exceeding its timeout. With a fallback, a failed or refused
call returns the fallback's result; without one, the error propagates (refused calls raise
CircuitOpenError) so the caller's own error handling sees it.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

from coverspot.domain.exceptions import CircuitOpenError

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """Circuit breaker for one external service."""

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        reset_timeout: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize circuit breaker.

        Args:
            name: Service name (logs, stats, CircuitOpenError)
            failure_threshold: Consecutive failures before opening the circuit
            reset_timeout: Seconds to wait before letting a trial call through
            clock: Monotonic time source, injectable for tests
        """
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        self.name = name
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self._clock = clock
        self._state = CircuitState.CLOSED
        self.failures = 0
        self.opened_at: float | None = None
        self._stats = {"calls": 0, "successes": 0, "failures": 0, "rejected": 0}

    @property
    def state(self) -> CircuitState:
        if (
            self._state is CircuitState.OPEN
            and self.opened_at is not None
            and self._clock() - self.opened_at >= self.reset_timeout
        ):
            return CircuitState.HALF_OPEN
        return self._state

    @property
    def is_open(self) -> bool:
        return self.state is CircuitState.OPEN

    def can_attempt(self) -> bool:
        """True if a call may go through right now."""
        return self.state is not CircuitState.OPEN

    def record_success(self) -> None:
        if self._state is not CircuitState.CLOSED:
            logger.info("Circuit breaker '%s' closed again", self.name)
        self._state = CircuitState.CLOSED
        self.failures = 0
        self.opened_at = None
        self._stats["successes"] += 1

    def record_failure(self) -> None:
        self.failures += 1
        self._stats["failures"] += 1
        was_trial = self.state is CircuitState.HALF_OPEN
        if was_trial or self.failures >= self.failure_threshold:
            self._state = CircuitState.OPEN
            self.opened_at = self._clock()
            logger.warning(
                "Circuit breaker '%s' opened after %d failures",
                self.name,
                self.failures,
                extra={"failures": self.failures, "threshold": self.failure_threshold},
            )

    async def call[T](
        self,
        fn: Callable[[], Awaitable[T]],
        timeout: float | None = None,
        fallback: Callable[[], Awaitable[T]] | None = None,
    ) -> T:
        """Run fn through the breaker.

        Args:
            fn: Zero-arg coroutine factory performing the remote call
            timeout: Seconds before the call counts as failed (None = no limit)
            fallback: Zero-arg coroutine factory used when the call fails or is refused

        Returns:
            fn's result, or fallback's result

        Raises:
            CircuitOpenError: Circuit open and no fallback given
            Exception: Whatever fn raised (TimeoutError on timeout) if no fallback given
        """
        self._stats["calls"] += 1
        if not self.can_attempt():
            self._stats["rejected"] += 1
            logger.debug("Circuit breaker '%s' is open, refusing call", self.name)
            if fallback is not None:
                return await fallback()
            raise CircuitOpenError(self.name, retry_after=self._retry_after())

        try:
            if timeout is None:
                result = await fn()
            else:
                result = await asyncio.wait_for(fn(), timeout=timeout)
        except Exception as e:
            self.record_failure()
            logger.debug("Call through '%s' failed: %s", self.name, e)
            if fallback is not None:
                return await fallback()
            raise

        self.record_success()
        return result

    def _retry_after(self) -> float | None:
        if self.opened_at is None:
            return None
        return max(0.0, self.reset_timeout - (self._clock() - self.opened_at))

    def get_stats(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state.value,
            "failures": self.failures,
            "failure_threshold": self.failure_threshold,
            "reset_timeout": self.reset_timeout,
            **self._stats,
        }

    def __repr__(self) -> str:
        return f"CircuitBreaker(name={self.name!r}, state={self.state.value})"


# Global circuit breakers, one per external service
_circuit_breakers: dict[str, CircuitBreaker] = {}
_registry_lock = threading.Lock()


def get_circuit_breaker(
    name: str, failure_threshold: int = 5, reset_timeout: float = 60.0
) -> CircuitBreaker:
    """Get or create the circuit breaker for a service.

    Thresholds only apply when the breaker is created.
    """
    with _registry_lock:
        breaker = _circuit_breakers.get(name)
        if breaker is None:
            breaker = CircuitBreaker(name, failure_threshold, reset_timeout)
            _circuit_breakers[name] = breaker
        return breaker


def get_all_circuit_breaker_stats() -> dict[str, dict[str, Any]]:
    with _registry_lock:
        breakers = list(_circuit_breakers.values())
    return {b.name: b.get_stats() for b in breakers}


def reset_circuit_breakers() -> None:
    """Forget every registered breaker (tests, config reload)."""
    with _registry_lock:
        _circuit_breakers.clear()


async def call[T](
    fn: Callable[[], Awaitable[T]],
    *,
    name: str,
    timeout: float | None = None,
    failure_threshold: int = 5,
    fallback: Callable[[], Awaitable[T]] | None = None,
) -> T:
    """Run fn through the named service's breaker (created on first use)."""
    breaker = get_circuit_breaker(name, failure_threshold=failure_threshold)
    return await breaker.call(fn, timeout=timeout, fallback=fallback)
