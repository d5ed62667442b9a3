"""Tests for session token parsing, validation and login."""

import json
from datetime import UTC, datetime

import httpx
import pytest
from helpers import DAY_MS, HOUR_MS, LOGIN_URL, make_account

from account_relay.accounts.models import now_ms
from account_relay.config.refresh import SessionSettings
from account_relay.config.upstream import UpstreamSettings
from account_relay.exceptions import AuthFailure
from account_relay.session.tokens import (
    SessionTokenManager,
    extract_grant,
    parse_expiry,
)


def _manager(handler=None, **upstream) -> SessionTokenManager:
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(
            handler or (lambda request: httpx.Response(404))
        )
    )
    return SessionTokenManager(
        UpstreamSettings(login_url=LOGIN_URL, **upstream),
        SessionSettings(login_attempts=1),
        client,
    )


@pytest.mark.unit
class TestParseExpiry:
    def test_epoch_seconds_become_milliseconds(self) -> None:
        assert parse_expiry(1_700_000_000) == 1_700_000_000_000

    def test_epoch_milliseconds_kept(self) -> None:
        assert parse_expiry(1_700_000_000_000) == 1_700_000_000_000

    def test_numeric_string(self) -> None:
        assert parse_expiry("1700000000") == 1_700_000_000_000

    def test_iso_date(self) -> None:
        expected = int(datetime(2030, 1, 1, tzinfo=UTC).timestamp() * 1000)
        assert parse_expiry("2030-01-01T00:00:00Z") == expected

    @pytest.mark.parametrize("value", [None, "", "not a date", 0, -5, True])
    def test_unusable_values(self, value: object) -> None:
        assert parse_expiry(value) is None


@pytest.mark.unit
class TestExtractGrant:
    def test_nested_data_payload(self) -> None:
        grant = extract_grant(
            {"data": {"sessionid": "abc", "sessionid_expires": 1_900_000_000}}, 60
        )
        assert grant is not None
        assert grant.token == "abc"
        assert grant.expires_at == 1_900_000_000_000

    def test_expires_in_relative_to_now(self) -> None:
        before = now_ms()
        grant = extract_grant({"token": "abc", "expires_in": 3600}, 60)
        assert grant is not None
        assert before + HOUR_MS <= grant.expires_at <= now_ms() + HOUR_MS

    def test_default_ttl_when_no_expiry(self) -> None:
        before = now_ms()
        grant = extract_grant({"session_token": "abc"}, 120)
        assert grant is not None
        assert grant.expires_at >= before + 120_000

    def test_missing_token(self) -> None:
        assert extract_grant({"expires_in": 60}, 60) is None
        assert extract_grant(["not", "a", "dict"], 60) is None


@pytest.mark.unit
class TestValidation:
    def test_valid_token(self) -> None:
        manager = _manager()
        assert manager.validate("us-abc.DEF_123", now_ms() + DAY_MS) is True

    def test_expired_or_missing_expiry(self) -> None:
        manager = _manager()
        assert manager.validate("abc", now_ms() - 1000) is False
        assert manager.validate("abc", None) is False

    def test_malformed_token(self) -> None:
        manager = _manager()
        assert manager.validate("has spaces", now_ms() + DAY_MS) is False
        assert manager.validate("", now_ms() + DAY_MS) is False
        assert manager.validate("a" * 5000, now_ms() + DAY_MS) is False

    @pytest.mark.parametrize(
        ("offset_ms", "threshold_hours", "expected"),
        [
            (48 * HOUR_MS, 24, False),
            (12 * HOUR_MS, 24, True),
            (-HOUR_MS, 24, True),
            (48 * HOUR_MS, 72, True),
            (HOUR_MS, 0, False),
        ],
    )
    def test_is_expiring_soon(
        self, offset_ms: int, threshold_hours: float, expected: bool
    ) -> None:
        manager = _manager()
        assert manager.is_expiring_soon(now_ms() + offset_ms, threshold_hours) is expected

    def test_unset_expiry_is_expiring(self) -> None:
        assert _manager().is_expiring_soon(None, 24) is True

    def test_health_stats(self) -> None:
        manager = _manager()
        accounts = [
            make_account("valid@example.com", expires_in_ms=30 * DAY_MS),
            make_account("soon@example.com", expires_in_ms=HOUR_MS),
            make_account("expired@example.com", expires_in_ms=-HOUR_MS),
            make_account("none@example.com", token=None, expires_in_ms=None),
        ]

        stats = manager.health_stats(accounts, threshold_hours=24)

        assert stats == {
            "total": 4,
            "valid": 2,
            "expiringSoon": 1,
            "expired": 1,
            "missing": 1,
        }


@pytest.mark.unit
@pytest.mark.asyncio
class TestLogin:
    async def test_login_posts_credentials(self) -> None:
        received: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            received.append(request)
            return httpx.Response(200, json={"sessionid": "sid", "expires_in": 60})

        grant = await _manager(handler).login("a@example.com", "pw")

        assert grant.token == "sid"
        assert str(received[0].url) == LOGIN_URL
        assert json.loads(received[0].read()) == {"email": "a@example.com", "password": "pw"}

    async def test_rejected_credentials(self) -> None:
        manager = _manager(lambda request: httpx.Response(401, json={"error": "no"}))

        with pytest.raises(AuthFailure) as exc_info:
            await manager.login("a@example.com", "pw")

        assert exc_info.value.identifier == "a@example.com"
        assert exc_info.value.status_code == 401

    async def test_non_json_response(self) -> None:
        manager = _manager(lambda request: httpx.Response(200, text="<html>"))

        with pytest.raises(AuthFailure):
            await manager.login("a@example.com", "pw")

    async def test_response_without_token(self) -> None:
        manager = _manager(lambda request: httpx.Response(200, json={"ok": True}))

        with pytest.raises(AuthFailure):
            await manager.login("a@example.com", "pw")

    async def test_unreachable_endpoint(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(AuthFailure) as exc_info:
            await _manager(handler).login("a@example.com", "pw")

        assert "unreachable" in exc_info.value.reason

    async def test_unconfigured_endpoint(self) -> None:
        manager = SessionTokenManager(
            UpstreamSettings(login_url=""),
            SessionSettings(login_attempts=1),
            httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200))),
        )

        with pytest.raises(AuthFailure):
            await manager.login("a@example.com", "pw")

    async def test_refresh_never_mutates_input(self) -> None:
        manager = _manager(
            lambda request: httpx.Response(200, json={"sessionid": "fresh", "expires_in": 60})
        )
        account = make_account("a@example.com", token="old")

        updated = await manager.refresh(account)

        assert updated is not None
        assert updated.session_token == "fresh"
        assert account.session_token == "old-a@example.com"

    async def test_refresh_failure_returns_none(self) -> None:
        manager = _manager(lambda request: httpx.Response(500))

        assert await manager.refresh(make_account("a@example.com")) is None

    async def test_exchange_without_refresh_endpoint_is_declined(self) -> None:
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json={"sessionid": "fresh"})

        manager = _manager(handler)

        assert await manager._exchange(make_account("a@example.com")) is None
        assert calls == []
