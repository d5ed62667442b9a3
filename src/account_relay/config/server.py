"""Server configuration settings."""

from pydantic import BaseModel, Field, field_validator


class ServerSettings(BaseModel):
    """HTTP server and logging configuration."""

    host: str = Field(default="127.0.0.1", description="Server host address")

    port: int = Field(default=8000, ge=1, le=65535, description="Server port number")

    log_level: str = Field(default="INFO", description="Logging level")

    log_json: bool = Field(default=False, description="Render logs as JSON lines")

    log_file: str | None = Field(
        default=None,
        description="Optional file to mirror logs into",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v = v.upper()
        if v not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v
