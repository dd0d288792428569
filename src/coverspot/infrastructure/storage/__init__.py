"""Cover storage adapters (ICoverStorage implementations)."""

from coverspot.infrastructure.storage.local_cover_storage import LocalDiskCoverStorage

__all__ = ["LocalDiskCoverStorage"]
