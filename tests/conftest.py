"""Shared fixtures: settings and services wired to mocked upstreams."""

from collections.abc import Callable
from pathlib import Path

import httpx
import pytest
from helpers import (
    LOGIN_URL,
    UPSTREAM_BASE,
    Handler,
    identity_handler,
    upstream_echo_handler,
)

from account_relay.accounts.persistence import JsonAccountPersistence
from account_relay.api.services import Services, build_services
from account_relay.config.settings import Settings


@pytest.fixture
def accounts_path(tmp_path: Path) -> Path:
    return tmp_path / "accounts.json"


@pytest.fixture
def settings(accounts_path: Path) -> Settings:
    """Settings with no delays, single login attempts and no background scans."""
    return Settings(
        upstream={"base_url": UPSTREAM_BASE, "login_url": LOGIN_URL},
        session={"login_attempts": 1},
        refresh={"auto_refresh": False, "delay_seconds": 0},
        storage={"accounts_path": accounts_path},
    )


@pytest.fixture
def build_test_services(
    settings: Settings, accounts_path: Path
) -> Callable[..., Services]:
    """Factory wiring services against mock identity and upstream transports."""

    def factory(
        identity: Handler | None = None,
        upstream: Handler | None = None,
        settings_override: Settings | None = None,
    ) -> Services:
        return build_services(
            settings_override or settings,
            persistence=JsonAccountPersistence(accounts_path),
            identity_client=httpx.AsyncClient(
                transport=httpx.MockTransport(identity or identity_handler())
            ),
            upstream_client=httpx.AsyncClient(
                transport=httpx.MockTransport(upstream or upstream_echo_handler)
            ),
        )

    return factory
