"""Session lifecycle and refresh scheduler settings."""

from pydantic import BaseModel, Field


class SessionSettings(BaseModel):
    """Login behaviour against the upstream identity endpoint."""

    default_token_ttl_seconds: int = Field(
        default=7 * 24 * 3600,
        ge=60,
        description="Expiry assumed when the identity endpoint omits one",
    )

    login_attempts: int = Field(
        default=2,
        ge=1,
        le=5,
        description="Attempts per login when the connection itself fails",
    )

    login_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for identity endpoint calls",
    )

    fallback_to_login: bool = Field(
        default=True,
        description="Re-login with stored credentials when a session exchange fails",
    )


class RefreshSettings(BaseModel):
    """
    Configuration for the background session refresh scan.

    Settings can be configured via environment variables with REFRESH__ prefix.
    """

    auto_refresh: bool = Field(
        default=True,
        description="Whether the periodic refresh scan is scheduled",
    )

    interval_seconds: int = Field(
        default=21600,
        ge=60,
        description="Seconds between refresh scans",
    )

    threshold_hours: float = Field(
        default=24,
        ge=0,
        description="Refresh sessions expiring within this many hours",
    )

    delay_seconds: float = Field(
        default=2.0,
        ge=0,
        description="Pause between consecutive refresh attempts",
    )
