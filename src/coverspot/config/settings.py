"""Application settings loaded from environment variables.

Every value can be overridden with a ``COVERSPOT_`` prefixed variable. Nested
groups use ``__`` as delimiter, e.g. ``COVERSPOT_CACHE__FINAL_DETAILS_CAPACITY=5000``
or ``COVERSPOT_PROVIDERS__GOOGLE_BOOKS_API_KEY=...``.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ProviderName = Literal["google_books", "open_library", "longitood"]


# Hey future me - these defaults ARE the cache contract. Final details live a week since last
# access, failures are remembered for a day. The bad-marker TTL (24h) outlives the provisional
# URL TTL (6h); see DESIGN.md before changing either.
class CoverCacheSettings(BaseModel):
    """Sizes and lifetimes of the in-memory cover caches."""

    path_by_url_capacity: int = Field(default=1000, ge=1)
    path_by_url_ttl_seconds: float = Field(default=24 * 3600, gt=0)

    provisional_url_capacity: int = Field(default=1000, ge=1)
    provisional_url_ttl_seconds: float = Field(default=6 * 3600, gt=0)

    final_details_capacity: int = Field(default=1000, ge=1)
    final_details_ttl_seconds: float = Field(default=7 * 24 * 3600, gt=0)

    bad_url_capacity: int = Field(default=5000, ge=1)
    bad_url_ttl_seconds: float = Field(default=24 * 3600, gt=0)

    bad_identifier_capacity: int = Field(default=2000, ge=1)
    bad_identifier_ttl_seconds: float = Field(default=24 * 3600, gt=0)


class ProviderSettings(BaseModel):
    """Remote cover provider configuration."""

    # Order matters: this is the fallback chain when no preferred source is requested.
    order: list[ProviderName] = Field(
        default_factory=lambda: ["google_books", "open_library", "longitood"]
    )
    google_books_base_url: str = "https://www.googleapis.com/books/v1"
    google_books_api_key: str | None = None
    open_library_covers_base_url: str = "https://covers.openlibrary.org/b/isbn"
    longitood_base_url: str = "https://bookcover.longitood.com/bookcover"

    fetch_timeout_seconds: float = Field(default=10.0, gt=0)
    circuit_failure_threshold: int = Field(default=5, ge=1)
    circuit_reset_timeout_seconds: float = Field(default=60.0, gt=0)

    @field_validator("order")
    @classmethod
    def _order_has_no_duplicates(cls, value: list[ProviderName]) -> list[ProviderName]:
        if len(set(value)) != len(value):
            raise ValueError("provider order must not contain duplicates")
        return value


class StorageSettings(BaseModel):
    """Local disk cover storage."""

    cache_dir: Path = Path("./data/book-covers")
    public_prefix: str = "/book-covers"
    store_timeout_seconds: float = Field(default=30.0, gt=0)
    min_dimension: int = Field(default=150, ge=2)
    max_download_bytes: int = Field(default=10 * 1024 * 1024, ge=1024)


class WorkerSettings(BaseModel):
    """Background resolution pool."""

    max_concurrent: int = Field(default=4, ge=1)
    queue_max_size: int = Field(default=500, ge=1)
    drain_timeout_seconds: float = Field(default=10.0, ge=0)


class ObservabilitySettings(BaseModel):
    """Logging configuration."""

    log_json_format: bool = False


class Settings(BaseSettings):
    """Root settings object."""

    model_config = SettingsConfigDict(
        env_prefix="COVERSPOT_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
    )

    app_name: str = "coverspot"
    log_level: str = "INFO"
    user_agent: str = "coverspot/0.1 (+https://github.com/coverspot/coverspot)"

    cache: CoverCacheSettings = Field(default_factory=CoverCacheSettings)
    providers: ProviderSettings = Field(default_factory=ProviderSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    worker: WorkerSettings = Field(default_factory=WorkerSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"invalid log level: {value}")
        return level

    def ensure_directories(self) -> None:
        """Create the cover cache directory if it does not exist."""
        self.storage.cache_dir.mkdir(parents=True, exist_ok=True)


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
