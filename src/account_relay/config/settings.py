"""Settings configuration for the account-relay server."""

import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from account_relay.config.cors import CORSSettings
from account_relay.config.discovery import find_toml_config_file, get_config_dir
from account_relay.config.refresh import RefreshSettings, SessionSettings
from account_relay.config.security import SecuritySettings
from account_relay.config.server import ServerSettings
from account_relay.config.upstream import ProxySettings, UpstreamSettings


__all__ = [
    "Settings",
    "StorageSettings",
    "ConfigurationError",
    "get_settings",
]


class ConfigurationError(Exception):
    """Raised when configuration loading or validation fails."""

    pass


class StorageSettings(BaseModel):
    """Where account records are persisted."""

    accounts_path: Path = Field(
        default_factory=lambda: get_config_dir() / "accounts.json",
        description="JSON file holding account records",
    )

    @field_validator("accounts_path", mode="after")
    @classmethod
    def expand_accounts_path(cls, v: Path) -> Path:
        return v.expanduser()


class Settings(BaseSettings):
    """
    Configuration settings for the account-relay server.

    Settings are loaded from environment variables, .env files, and TOML configuration files.
    Environment variables take precedence over .env file values; explicit
    keyword arguments take precedence over both.
    Nested sections use ``__`` in environment names, e.g. ``UPSTREAM__BASE_URL``.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__",
    )

    server: ServerSettings = Field(default_factory=ServerSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    cors: CORSSettings = Field(default_factory=CORSSettings)
    upstream: UpstreamSettings = Field(default_factory=UpstreamSettings)
    proxy: ProxySettings = Field(default_factory=ProxySettings)
    session: SessionSettings = Field(default_factory=SessionSettings)
    refresh: RefreshSettings = Field(default_factory=RefreshSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)

    @property
    def server_url(self) -> str:
        """Get the complete server URL."""
        return f"http://{self.server.host}:{self.server.port}"

    @classmethod
    def load_toml_config(cls, toml_path: Path) -> dict[str, Any]:
        """Load configuration from a TOML file.

        Raises:
            ValueError: If the TOML file is invalid or cannot be read
        """
        try:
            with toml_path.open("rb") as f:
                return tomllib.load(f)
        except OSError as e:
            raise ValueError(f"Cannot read TOML config file {toml_path}: {e}") from e
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Invalid TOML syntax in {toml_path}: {e}") from e

    @classmethod
    def from_config(
        cls, config_path: Path | str | None = None, **kwargs: Any
    ) -> "Settings":
        """Create Settings instance from configuration file.

        Args:
            config_path: Path to configuration file. Can be:
                - None: Auto-discover config file or use CONFIG_FILE env var
                - Path or str: Use this specific config file
            **kwargs: Additional keyword arguments to override config values

        Returns:
            Settings: Configured Settings instance
        """
        if config_path is None:
            config_path_env = os.environ.get("CONFIG_FILE")
            if config_path_env:
                config_path = Path(config_path_env)

        if isinstance(config_path, str):
            config_path = Path(config_path)

        if config_path is None:
            config_path = find_toml_config_file()

        config_data: dict[str, Any] = {}
        if config_path and config_path.exists():
            if config_path.suffix.lower() != ".toml":
                raise ValueError(
                    f"Unsupported config file format: {config_path.suffix}. "
                    "Only TOML (.toml) files are supported."
                )
            config_data = cls.load_toml_config(config_path)

        merged_config = {**config_data, **kwargs}
        return cls(**merged_config)


def get_settings(config_path: Path | str | None = None, **overrides: Any) -> Settings:
    """Build settings from the environment, an optional TOML file and overrides.

    Raises:
        ConfigurationError: If the configuration cannot be loaded or is invalid
    """
    try:
        return Settings.from_config(config_path=config_path, **overrides)
    except (OSError, ValueError) as e:
        # pydantic.ValidationError is a ValueError subclass
        raise ConfigurationError(f"Failed to load configuration: {e}") from e
