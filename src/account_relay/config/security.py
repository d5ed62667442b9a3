"""Security configuration settings."""

from pydantic import BaseModel, Field, field_validator


class SecuritySettings(BaseModel):
    """Admin gate and inbound API key configuration."""

    admin_key: str | None = Field(
        default=None,
        description="Key required for account management and target changes (unset = open)",
    )

    api_keys: list[str] = Field(
        default_factory=list,
        description="Keys accepted on proxied requests (empty = no check)",
    )

    @field_validator("api_keys", mode="before")
    @classmethod
    def validate_api_keys(cls, v: str | list[str] | None) -> list[str]:
        """Parse API keys from a comma-separated string or list."""
        if v is None:
            return []
        if isinstance(v, str):
            return [key.strip() for key in v.split(",") if key.strip()]
        return [key for key in v if key]

    @field_validator("admin_key", mode="before")
    @classmethod
    def validate_admin_key(cls, v: str | None) -> str | None:
        if isinstance(v, str) and not v.strip():
            return None
        return v
