"""Factories and mock upstream handlers shared by the unit tests."""

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx

from account_relay.accounts.models import Account, now_ms


DAY_MS = 24 * 3600 * 1000
HOUR_MS = 3600 * 1000
LOGIN_URL = "https://identity.example/login"
REFRESH_URL = "https://identity.example/refresh"
UPSTREAM_BASE = "https://up.example"

Handler = Callable[[httpx.Request], httpx.Response]


def make_account(
    identifier: str,
    token: str | None = "tok",
    expires_in_ms: int | None = 30 * DAY_MS,
    secret: str = "pw",
) -> Account:
    """Build an account whose session expires ``expires_in_ms`` from now."""
    expires_at = now_ms() + expires_in_ms if expires_in_ms is not None else None
    return Account(
        identifier=identifier,
        secret=secret,
        session_token=f"{token}-{identifier}" if token else None,
        session_expires_at=expires_at,
    )


def raw_response(
    status_code: int = 200, body: bytes = b"", headers: Any = None
) -> httpx.Response:
    """Unread upstream response suitable for streamed relaying."""
    return httpx.Response(status_code, headers=headers, stream=httpx.ByteStream(body))


def identity_handler(
    rejected: set[str] | None = None, ttl_seconds: int = 7 * 24 * 3600
) -> Handler:
    """Identity endpoint issuing ``session-<email>`` unless the email is rejected."""
    rejected = rejected or set()

    def handler(request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        email = payload.get("email", "")
        if email in rejected or payload.get("password") == "wrong":
            return httpx.Response(401, json={"error": "invalid credentials"})
        return httpx.Response(
            200,
            json={"data": {"sessionid": f"session-{email}", "expires_in": ttl_seconds}},
        )

    return handler


def upstream_echo_handler(request: httpx.Request) -> httpx.Response:
    """Upstream API that echoes what it received."""
    body = json.dumps(
        {
            "method": request.method,
            "url": str(request.url),
            "authorization": request.headers.get("authorization"),
            "body": request.content.decode() if request.content else "",
        }
    ).encode()
    return raw_response(
        200,
        body,
        headers=[
            ("content-type", "application/json"),
            ("x-upstream", "yes"),
            ("connection", "keep-alive"),
            ("keep-alive", "timeout=5"),
            ("upgrade", "h2c"),
        ],
    )


def write_accounts_file(path: Path, accounts: list[Account]) -> None:
    path.write_text(
        json.dumps(
            {
                "version": 1,
                "accounts": {a.identifier: a.to_dict() for a in accounts},
            }
        )
    )
