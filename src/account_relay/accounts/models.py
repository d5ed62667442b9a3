"""Account record for the session pool.

A record pairs login credentials with the session token derived from them.
Records are immutable: every refresh or re-login produces a new instance,
so readers never observe a half-updated account.
"""

from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import Any


def now_ms() -> int:
    """Current time as Unix milliseconds."""
    return int(datetime.now(UTC).timestamp() * 1000)


def mask_token(token: str | None, visible: int = 4) -> str | None:
    """Mask a session token for display, keeping only its tail."""
    if not token:
        return None
    if len(token) <= visible * 2:
        return "****"
    return f"****{token[-visible:]}"


@dataclass(frozen=True)
class Account:
    """An upstream account in the pool."""

    identifier: str
    secret: str
    session_token: str | None = None
    session_expires_at: int | None = None  # Unix timestamp in milliseconds

    def __post_init__(self) -> None:
        if not self.identifier or not self.identifier.strip():
            raise ValueError("Account identifier must not be empty")

    @property
    def has_session(self) -> bool:
        """Whether the account can be used for dispatch."""
        return bool(self.session_token)

    @property
    def expires_at_datetime(self) -> datetime | None:
        """Convert session_expires_at to datetime."""
        if self.session_expires_at is None:
            return None
        return datetime.fromtimestamp(self.session_expires_at / 1000, tz=UTC)

    @property
    def expires_in_seconds(self) -> int | None:
        """Seconds until the session expires (negative if expired)."""
        if self.session_expires_at is None:
            return None
        return (self.session_expires_at - now_ms()) // 1000

    def with_session(self, token: str, expires_at: int) -> "Account":
        """Return a copy carrying a new session."""
        return replace(self, session_token=token, session_expires_at=expires_at)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization (identifier is the key)."""
        return {
            "secret": self.secret,
            "sessionToken": self.session_token,
            "sessionExpiresAt": self.session_expires_at,
        }

    @classmethod
    def from_dict(cls, identifier: str, data: dict[str, Any]) -> "Account":
        """Create from a persisted dictionary."""
        expires_at = data.get("sessionExpiresAt")
        return cls(
            identifier=identifier,
            secret=data["secret"],
            session_token=data.get("sessionToken") or None,
            session_expires_at=int(expires_at) if expires_at is not None else None,
        )

    def public_dict(self) -> dict[str, Any]:
        """Admin listing view; never includes the secret or the full token."""
        expires_at = self.expires_at_datetime
        return {
            "email": self.identifier,
            "hasSession": self.has_session,
            "sessionToken": mask_token(self.session_token),
            "sessionExpiresAt": expires_at.isoformat() if expires_at else None,
            "sessionExpiresIn": self.expires_in_seconds,
        }
