"""Upstream service and proxy routing settings."""

from pydantic import BaseModel, Field, field_validator


class UpstreamSettings(BaseModel):
    """Where sessions come from and where traffic goes."""

    base_url: str = Field(
        default="",
        description="Initial upstream API base address (empty = proxy disabled)",
    )

    login_url: str = Field(
        default="",
        description="Upstream identity endpoint accepting email/password",
    )

    refresh_url: str | None = Field(
        default=None,
        description="Optional endpoint exchanging a live session for a new one",
    )

    timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Timeout for proxied upstream calls",
    )

    token_prefix: str = Field(
        default="us-",
        description="Scheme prefix the upstream expects on session tokens",
    )

    user_agent: str = Field(
        default="account-relay",
        description="User-Agent sent to the identity endpoint",
    )

    @field_validator("base_url", mode="before")
    @classmethod
    def strip_base_url(cls, v: str | None) -> str:
        return (v or "").strip().rstrip("/")


class ProxySettings(BaseModel):
    """Inbound routing and request logging for the dispatcher."""

    routing_prefix: str = Field(
        default="/api",
        description="Path prefix stripped before forwarding",
    )

    reserved_paths: list[str] = Field(
        default_factory=lambda: ["/accounts", "/proxy", "/events", "/health"],
        description="Sub-paths under the prefix that are never forwarded",
    )

    log_body: bool = Field(
        default=False,
        description="Log truncated request/response bodies for text payloads",
    )

    log_body_max: int = Field(
        default=2048,
        ge=0,
        description="Maximum body bytes included in logs",
    )

    @field_validator("routing_prefix")
    @classmethod
    def normalize_prefix(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if v and not v.startswith("/"):
            v = f"/{v}"
        return v

    @field_validator("reserved_paths", mode="before")
    @classmethod
    def validate_reserved_paths(cls, v: str | list[str]) -> list[str]:
        if isinstance(v, str):
            v = [p.strip() for p in v.split(",") if p.strip()]
        return [p if p.startswith("/") else f"/{p}" for p in v]
