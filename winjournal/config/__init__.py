"""Config package exporting loader helpers."""

from .loader import CategoryConfig, Settings, StatsConfig, StorageConfig, load_settings

__all__ = [
    "CategoryConfig",
    "Settings",
    "StatsConfig",
    "StorageConfig",
    "load_settings",
]
