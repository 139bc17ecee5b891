"""Contract functions and settings management."""

from farm_tracker.data.loader import RetrySettings, Settings, load_settings

__all__ = [
    "RetrySettings",
    "Settings",
    "load_settings",
]
