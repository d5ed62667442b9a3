"""account-relay - session-token account pool with a passthrough proxy."""

from ._version import __version__


__all__ = ["__version__"]
