"""Administrative gate and inbound API key check."""

import secrets
from collections.abc import Iterable

from starlette.requests import HTTPConnection
from structlog import get_logger


logger = get_logger(__name__)


def extract_bearer_token(authorization: str | None) -> str | None:
    """Parse ``Bearer <token>`` from an Authorization header value."""
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1]


def _matches(candidate: str | None, expected: Iterable[str]) -> bool:
    if not candidate:
        return False
    # Compare against every key so timing does not reveal which one matched
    matched = False
    for key in expected:
        if secrets.compare_digest(candidate.encode(), key.encode()):
            matched = True
    return matched


class AdminGate:
    """Pass/fail predicate guarding privileged operations.

    With no admin key configured every caller passes.
    """

    header_name = "x-admin-key"

    def __init__(self, admin_key: str | None) -> None:
        self._admin_key = admin_key

    @property
    def enabled(self) -> bool:
        return bool(self._admin_key)

    def is_authorized(self, connection: HTTPConnection) -> bool:
        if not self._admin_key:
            return True

        candidate = connection.headers.get(self.header_name) or extract_bearer_token(
            connection.headers.get("authorization")
        )
        authorized = _matches(candidate, [self._admin_key])
        if not authorized:
            logger.warning(
                "admin_gate_denied",
                path=connection.url.path,
                client_ip=connection.client.host if connection.client else "unknown",
            )
        return authorized


class ApiKeyVerifier:
    """Checks the caller's key on proxied requests.

    With no keys configured every caller passes.
    """

    header_name = "x-api-key"

    def __init__(self, api_keys: Iterable[str]) -> None:
        self._keys = [key for key in api_keys if key]

    @property
    def enabled(self) -> bool:
        return bool(self._keys)

    def verify(self, connection: HTTPConnection) -> bool:
        if not self._keys:
            return True
        candidate = extract_bearer_token(
            connection.headers.get("authorization")
        ) or connection.headers.get(self.header_name)
        return _matches(candidate, self._keys)
