"""Resilient provider wrapper - timeout + circuit breaker around any ICoverProvider.

Hey future me - the concrete providers know nothing about timeouts or breakers. The
container wraps each one in ResilientCoverProvider, so every fetch() goes through
CircuitBreaker.call(). Failures are NOT swallowed here: a timeout, an HTTP error or a
refused call (CircuitOpenError) is raised from the coroutine and the fetch orchestrator
turns it into FAILURE_GENERIC + a placeholder.
"""

from coverspot.domain.ports.image_provider import ICoverProvider
from coverspot.domain.value_objects.image_details import (
    CoverImageSource,
    ImageDetails,
    ImageResolutionPreference,
    ImageSourceName,
)
from coverspot.infrastructure.observability.circuit_breaker import CircuitBreaker


class ResilientCoverProvider(ICoverProvider):
    """Decorates a provider with a per-call timeout and a circuit breaker."""

    def __init__(
        self,
        provider: ICoverProvider,
        breaker: CircuitBreaker,
        timeout: float | None = None,
    ) -> None:
        self.inner = provider
        self.breaker = breaker
        self.timeout = timeout

    @property
    def source(self) -> CoverImageSource:
        return self.inner.source

    @property
    def provider_name(self) -> ImageSourceName:
        return self.inner.provider_name

    @property
    def supports_volume_ids(self) -> bool:  # type: ignore[override]
        return self.inner.supports_volume_ids

    async def is_available(self) -> bool:
        return await self.inner.is_available()

    def size_tiers(
        self, identifier: str, resolution: ImageResolutionPreference
    ) -> list[tuple[str, ImageResolutionPreference]]:
        return self.inner.size_tiers(identifier, resolution)

    async def fetch(
        self,
        identifier: str,
        resolution: ImageResolutionPreference = ImageResolutionPreference.ANY,
    ) -> ImageDetails | None:
        return await self.breaker.call(
            lambda: self.inner.fetch(identifier, resolution), timeout=self.timeout
        )

    def __repr__(self) -> str:
        return f"ResilientCoverProvider({self.inner!r}, breaker={self.breaker!r})"
