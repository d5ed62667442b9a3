"""Access checks for admin and proxied routes."""

from .gate import AdminGate, ApiKeyVerifier, extract_bearer_token


__all__ = ["AdminGate", "ApiKeyVerifier", "extract_bearer_token"]
