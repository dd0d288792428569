"""Configuration module for coverspot."""

from .settings import (
    CoverCacheSettings,
    ObservabilitySettings,
    ProviderSettings,
    Settings,
    StorageSettings,
    WorkerSettings,
    get_settings,
)

__all__ = [
    "CoverCacheSettings",
    "ObservabilitySettings",
    "ProviderSettings",
    "Settings",
    "StorageSettings",
    "WorkerSettings",
    "get_settings",
]
