from pathlib import Path


def get_config_dir() -> Path:
    """Get the per-user account-relay directory."""
    return Path("~/.account_relay").expanduser()


def find_toml_config_file() -> Path | None:
    """Find the TOML configuration file for account_relay.

    Searches in the following order:
    1. .account_relay.toml in current directory
    2. account_relay.toml in current directory
    3. config.toml in ~/.account_relay/
    """
    candidates = [
        Path(".account_relay.toml").resolve(),
        Path("account_relay.toml").resolve(),
        get_config_dir() / "config.toml",
    ]

    for candidate in candidates:
        if candidate.exists() and candidate.is_file():
            return candidate

    return None
