"""Cover Provider Interface - abstraction for remote cover sources.

Hey future me - this is the PORT for remote cover sources (Google Books, OpenLibrary,
Longitood). The cover services only ever talk to ICoverProvider; concrete HTTP clients
live in infrastructure/providers/.

Contract:
- fetch() returns ONE ImageDetails or None ("this source has nothing for that id")
- transport/HTTP problems surface as raised exceptions from the coroutine,
  never as a synchronous raise when the coroutine is created
- timeouts and circuit breaking are the adapter's job (see ResilientCoverProvider)
"""

from abc import ABC, abstractmethod

from coverspot.domain.value_objects.image_details import (
    CoverImageSource,
    ImageDetails,
    ImageResolutionPreference,
    ImageSourceName,
)


class ICoverProvider(ABC):
    """Interface for remote cover providers."""

    @property
    @abstractmethod
    def source(self) -> CoverImageSource:
        """Which CoverImageSource this provider serves."""
        ...

    @property
    def provider_name(self) -> ImageSourceName:
        """Name used in provenance records and logs."""
        return ImageSourceName.from_cover_source(self.source)

    async def is_available(self) -> bool:
        """Whether the provider can currently be used (configured, circuit closed...)."""
        return True

    # Google Books can also look a book up by its volume id when there's no ISBN
    supports_volume_ids: bool = False

    def size_tiers(
        self, identifier: str, resolution: ImageResolutionPreference
    ) -> list[tuple[str, ImageResolutionPreference]]:
        """(cache key, resolution) pairs to try in order, largest acceptable first.

        Most providers answer one lookup per identifier. Providers that serve fixed
        size variants (OpenLibrary S/M/L) return one entry per size, each with its own
        negative-cache key so a missing L doesn't hide an existing M.
        """
        return [(identifier, resolution)]

    @abstractmethod
    async def fetch(
        self,
        identifier: str,
        resolution: ImageResolutionPreference = ImageResolutionPreference.ANY,
    ) -> ImageDetails | None:
        """Look up a cover for the given identifier (an ISBN, or a volume id where supported).

        Returns:
            ImageDetails, or None if there's no cover. location_ref may be None when the
            source answered without a usable URL (recorded as a no-URL failure).

        Raises:
            ExternalServiceError: On transport or unexpected HTTP errors.
        """
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}(source={self.source.name})"
