"""Cover Storage Interface - durable storage for downloaded covers."""

from abc import ABC, abstractmethod

from coverspot.domain.entities.provenance import ProvenanceLog
from coverspot.domain.value_objects.image_details import ImageDetails


class ICoverStorage(ABC):
    """Persistence adapter that turns a remote cover URL into a stored asset."""

    # Hey future me - implementations record their OWN provenance attempt (download/store)
    # into the log they are handed. The returned location_ref must resolve back to the
    # stored asset. Returning None, or a placeholder, means "couldn't store it" - the
    # orchestrator treats both as a failed download.
    @abstractmethod
    async def store(
        self,
        locator: str,
        item_id_for_log: str | None,
        provenance: ProvenanceLog,
        label: str,
    ) -> ImageDetails | None:
        """Download/upload the image at locator and return its stored details."""
        ...
