"""Session token lifecycle against the upstream identity service.

Login and refresh are separate, fallible operations: the upstream may want
different request shapes for "exchange a session that is about to expire"
and "authenticate from credentials". The account manager decides whether a
failed refresh falls back to a full login.
"""

import re
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx
from dateutil import parser as dateutil_parser
from structlog import get_logger
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from account_relay.accounts.models import Account, now_ms
from account_relay.config.refresh import SessionSettings
from account_relay.config.upstream import UpstreamSettings
from account_relay.exceptions import AuthFailure


logger = get_logger(__name__)

SESSION_TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9._~+/=-]+$")
MAX_TOKEN_LENGTH = 4096

TOKEN_FIELDS = ("sessionid", "session_token", "sessionToken", "token")
EXPIRY_FIELDS = ("expires_at", "expiresAt", "expires", "sessionid_expires")

# Epoch values above this are milliseconds, below are seconds
EPOCH_MS_THRESHOLD = 10**11


@dataclass(frozen=True)
class SessionGrant:
    """A session issued by the identity service."""

    token: str
    expires_at: int  # Unix timestamp in milliseconds


def parse_expiry(value: Any) -> int | None:
    """Normalize an expiry value to Unix milliseconds.

    Accepts epoch seconds, epoch milliseconds (numbers or numeric strings) and
    date strings (ISO8601, RFC 2822).
    """
    if value is None or value == "":
        return None

    if isinstance(value, bool):
        return None

    if isinstance(value, int | float):
        number = float(value)
    else:
        text = str(value).strip()
        try:
            number = float(text)
        except ValueError:
            try:
                dt = dateutil_parser.parse(text)
            except (ValueError, OverflowError, dateutil_parser.ParserError):
                return None
            if dt.tzinfo is None:
                dt = dt.replace(tzinfo=UTC)
            return int(dt.timestamp() * 1000)

    if number <= 0:
        return None
    if number >= EPOCH_MS_THRESHOLD:
        return int(number)
    return int(number * 1000)


def extract_grant(data: Any, default_ttl_seconds: int) -> SessionGrant | None:
    """Pull the session token and expiry out of an identity response body."""
    if not isinstance(data, dict):
        return None

    payload = data.get("data") if isinstance(data.get("data"), dict) else data

    token = next(
        (payload[f] for f in TOKEN_FIELDS if isinstance(payload.get(f), str) and payload[f]),
        None,
    )
    if not token:
        return None

    expires_at = None
    for field in EXPIRY_FIELDS:
        expires_at = parse_expiry(payload.get(field))
        if expires_at is not None:
            break

    if expires_at is None and payload.get("expires_in") is not None:
        try:
            expires_at = now_ms() + int(float(payload["expires_in"]) * 1000)
        except (TypeError, ValueError):
            expires_at = None

    if expires_at is None:
        expires_at = now_ms() + default_ttl_seconds * 1000

    return SessionGrant(token=token, expires_at=expires_at)


class SessionTokenManager:
    """Logs in, validates and refreshes upstream session tokens."""

    def __init__(
        self,
        upstream: UpstreamSettings,
        session: SessionSettings,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the token manager.

        Args:
            upstream: Identity endpoint configuration
            session: Login behaviour (timeouts, attempts, default TTL)
            http_client: Optional client to use instead of an owned one
        """
        self.upstream = upstream
        self.session = session
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(
            timeout=session.login_timeout_seconds
        )

    async def aclose(self) -> None:
        """Close the HTTP client if this manager created it."""
        if self._owns_client:
            await self._http_client.aclose()

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": self.upstream.user_agent,
        }

    async def _post(
        self, url: str, payload: dict[str, Any], headers: dict[str, str]
    ) -> httpx.Response:
        """POST with a fixed-wait retry on connection-level failures only."""
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.session.login_attempts),
            wait=wait_fixed(1),
            retry=retry_if_exception_type(httpx.TransportError),
            reraise=True,
        ):
            with attempt:
                return await self._http_client.post(url, json=payload, headers=headers)
        raise AssertionError("unreachable")  # pragma: no cover

    async def login(self, identifier: str, secret: str) -> SessionGrant:
        """Authenticate against the identity endpoint.

        Returns:
            The issued session

        Raises:
            AuthFailure: If credentials are rejected or the endpoint is unreachable
        """
        if not self.upstream.login_url:
            raise AuthFailure(identifier, "identity endpoint not configured")

        logger.info("session_login_start", account=identifier)
        try:
            response = await self._post(
                self.upstream.login_url,
                {"email": identifier, "password": secret},
                self._headers(),
            )
        except httpx.HTTPError as e:
            logger.error("session_login_unreachable", account=identifier, error=str(e))
            raise AuthFailure(identifier, f"identity endpoint unreachable: {e}") from e

        if not response.is_success:
            logger.warning(
                "session_login_rejected",
                account=identifier,
                status=response.status_code,
            )
            raise AuthFailure(identifier, f"rejected with status {response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            raise AuthFailure(identifier, "identity response is not JSON") from e

        grant = extract_grant(body, self.session.default_token_ttl_seconds)
        if grant is None or not self.validate(grant.token, grant.expires_at):
            logger.warning("session_login_no_token", account=identifier)
            raise AuthFailure(identifier, "identity response carried no valid session")

        logger.info(
            "session_login_success",
            account=identifier,
            expires_at=datetime.fromtimestamp(grant.expires_at / 1000, tz=UTC).isoformat(),
        )
        return grant

    def validate(self, token: str | None, expires_at: int | None) -> bool:
        """Check token structure and that the expiry lies in the future."""
        if not token or not isinstance(token, str):
            return False
        if len(token) > MAX_TOKEN_LENGTH or not SESSION_TOKEN_PATTERN.match(token):
            return False
        if expires_at is None:
            return False
        return expires_at > now_ms()

    def is_expiring_soon(self, expires_at: int | None, threshold_hours: float) -> bool:
        """True if the expiry is unset or falls within ``threshold_hours`` of now."""
        if expires_at is None:
            return True
        deadline = datetime.now(UTC) + timedelta(hours=threshold_hours)
        return expires_at <= int(deadline.timestamp() * 1000)

    def can_exchange(self, account: Account) -> bool:
        """Whether ``refresh`` would reuse the account's live session."""
        return bool(self.upstream.refresh_url) and account.has_session

    async def _exchange(self, account: Account) -> SessionGrant | None:
        if not self.upstream.refresh_url:
            return None
        headers = self._headers()
        headers["Authorization"] = f"Bearer {account.session_token}"
        try:
            response = await self._post(
                self.upstream.refresh_url,
                {"email": account.identifier},
                headers,
            )
        except httpx.HTTPError as e:
            logger.warning(
                "session_exchange_unreachable", account=account.identifier, error=str(e)
            )
            return None

        if not response.is_success:
            logger.warning(
                "session_exchange_rejected",
                account=account.identifier,
                status=response.status_code,
            )
            return None

        try:
            body = response.json()
        except ValueError:
            return None
        grant = extract_grant(body, self.session.default_token_ttl_seconds)
        if grant is None or not self.validate(grant.token, grant.expires_at):
            return None
        return grant

    async def refresh(self, account: Account) -> Account | None:
        """Obtain a new session for ``account``.

        Exchanges the current session when a refresh endpoint is configured
        and the account holds one; otherwise re-authenticates with the stored
        credentials. The input is never modified.

        Returns:
            A new Account carrying the fresh session, or None on failure
        """
        if self.can_exchange(account):
            grant = await self._exchange(account)
        else:
            try:
                grant = await self.login(account.identifier, account.secret)
            except AuthFailure:
                grant = None

        if grant is None:
            return None
        return account.with_session(grant.token, grant.expires_at)

    def health_stats(
        self, accounts: list[Account], threshold_hours: float = 24
    ) -> dict[str, int]:
        """Summarize token health across ``accounts``."""
        now = now_ms()
        stats = {"total": len(accounts), "valid": 0, "expiringSoon": 0, "expired": 0, "missing": 0}
        for account in accounts:
            if not account.has_session:
                stats["missing"] += 1
                continue
            if account.session_expires_at is not None and account.session_expires_at <= now:
                stats["expired"] += 1
                continue
            if self.validate(account.session_token, account.session_expires_at):
                stats["valid"] += 1
            if self.is_expiring_soon(account.session_expires_at, threshold_hours):
                stats["expiringSoon"] += 1
        return stats
