"""Domain value objects."""

from coverspot.domain.value_objects.image_details import (
    HIGH_RES_PIXEL_THRESHOLD,
    MIN_ACCEPTABLE_CACHED_DIMENSION,
    MIN_ACCEPTABLE_DIMENSION,
    MIN_VALID_DIMENSION,
    CoverImages,
    CoverImageSource,
    ImageDetails,
    ImageResolutionPreference,
    ImageSourceName,
)

__all__ = [
    "HIGH_RES_PIXEL_THRESHOLD",
    "MIN_ACCEPTABLE_CACHED_DIMENSION",
    "MIN_ACCEPTABLE_DIMENSION",
    "MIN_VALID_DIMENSION",
    "CoverImageSource",
    "CoverImages",
    "ImageDetails",
    "ImageResolutionPreference",
    "ImageSourceName",
]
