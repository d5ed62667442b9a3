"""Configuration for account-relay."""

from .settings import ConfigurationError, Settings, StorageSettings, get_settings


__all__ = [
    "ConfigurationError",
    "Settings",
    "StorageSettings",
    "get_settings",
]
