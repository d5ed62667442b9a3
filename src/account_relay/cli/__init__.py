"""Command line interface for the account relay."""

from .main import app, app_main, main, version_callback


__all__ = [
    "app",
    "app_main",
    "main",
    "version_callback",
]
