"""Tests for the session refresh scheduler."""

import asyncio
from collections.abc import Callable
from unittest.mock import AsyncMock, patch

import pytest
from helpers import DAY_MS, HOUR_MS, identity_handler, make_account

from account_relay.api.services import Services
from account_relay.config.refresh import RefreshSettings
from account_relay.session.refresh import (
    FORCE_REFRESH_THRESHOLD_HOURS,
    RefreshScheduler,
    SchedulerState,
)


@pytest.mark.unit
@pytest.mark.asyncio
class TestRunCycle:
    async def test_skipped_until_manager_initialized(
        self, build_test_services: Callable[..., Services]
    ) -> None:
        services = build_test_services()
        await services.store.add(make_account("a@example.com", expires_in_ms=HOUR_MS))

        report = await services.scheduler.run_cycle()

        assert report.skipped is True
        assert report.candidates == 0

    async def test_partial_failures_do_not_abort_the_batch(
        self, build_test_services: Callable[..., Services]
    ) -> None:
        failing = {"b@example.com", "d@example.com"}
        services = build_test_services(identity=identity_handler(rejected=failing))
        originals = {
            name: make_account(name, token="old", expires_in_ms=HOUR_MS)
            for name in ("a@example.com", "b@example.com", "c@example.com", "d@example.com")
        }
        for account in originals.values():
            await services.store.add(account)
        services.manager.initialized = True

        report = await services.scheduler.run_cycle(threshold_hours=24)

        assert report.candidates == 4
        assert report.succeeded == 4 - len(failing)
        assert report.failed == len(failing)
        assert sorted(report.failed_identifiers) == sorted(failing)
        for name in failing:
            assert services.store.get(name) == originals[name]
        for name in ("a@example.com", "c@example.com"):
            assert services.store.get(name).session_token == f"session-{name}"
        assert services.scheduler.state is SchedulerState.IDLE
        assert services.scheduler.last_report is report

    async def test_only_expiring_sessions_are_candidates(
        self, build_test_services: Callable[..., Services]
    ) -> None:
        services = build_test_services()
        fresh = make_account("fresh@example.com", token="old", expires_in_ms=30 * DAY_MS)
        await services.store.add(fresh)
        await services.store.add(make_account("soon@example.com", expires_in_ms=HOUR_MS))
        await services.store.add(
            make_account("none@example.com", token=None, expires_in_ms=None)
        )
        services.manager.initialized = True

        report = await services.scheduler.run_cycle(threshold_hours=24)

        assert report.candidates == 2
        assert report.succeeded == 2
        assert services.store.get("fresh@example.com") == fresh

    async def test_force_threshold_covers_every_account(
        self, build_test_services: Callable[..., Services]
    ) -> None:
        services = build_test_services()
        for name in ("a@example.com", "b@example.com"):
            await services.store.add(make_account(name, expires_in_ms=90 * DAY_MS))
        services.manager.initialized = True

        report = await services.scheduler.run_cycle(FORCE_REFRESH_THRESHOLD_HOURS)

        assert report.candidates == 2
        assert report.to_dict()["successCount"] == 2

    async def test_unexpected_errors_are_counted(
        self, build_test_services: Callable[..., Services]
    ) -> None:
        services = build_test_services()
        await services.store.add(make_account("a@example.com", expires_in_ms=HOUR_MS))
        await services.store.add(make_account("b@example.com", expires_in_ms=HOUR_MS))
        services.manager.initialized = True

        real_refresh_one = services.manager.refresh_one

        async def flaky(account):
            if account.identifier == "a@example.com":
                raise RuntimeError("boom")
            return await real_refresh_one(account)

        with patch.object(services.manager, "refresh_one", side_effect=flaky):
            report = await services.scheduler.run_cycle(24)

        assert report.failed_identifiers == ["a@example.com"]
        assert report.succeeded == 1

    async def test_delay_between_attempts(
        self, build_test_services: Callable[..., Services]
    ) -> None:
        services = build_test_services()
        for name in ("a@example.com", "b@example.com", "c@example.com"):
            await services.store.add(make_account(name, expires_in_ms=HOUR_MS))
        services.manager.initialized = True
        scheduler = RefreshScheduler(
            services.manager, RefreshSettings(auto_refresh=False, delay_seconds=1.5)
        )

        with patch("account_relay.session.refresh.asyncio.sleep", new=AsyncMock()) as sleep:
            await scheduler.run_cycle(24)

        assert sleep.await_count == 2
        sleep.assert_awaited_with(1.5)

    async def test_cycles_never_overlap(
        self, build_test_services: Callable[..., Services]
    ) -> None:
        services = build_test_services()
        await services.store.add(make_account("a@example.com", expires_in_ms=HOUR_MS))
        services.manager.initialized = True

        active = 0
        max_active = 0
        real_refresh_one = services.manager.refresh_one

        async def tracking(account):
            nonlocal active, max_active
            active += 1
            max_active = max(max_active, active)
            await asyncio.sleep(0.01)
            try:
                return await real_refresh_one(account)
            finally:
                active -= 1

        with patch.object(services.manager, "refresh_one", side_effect=tracking):
            await asyncio.gather(
                services.scheduler.run_cycle(FORCE_REFRESH_THRESHOLD_HOURS),
                services.scheduler.run_cycle(FORCE_REFRESH_THRESHOLD_HOURS),
            )

        assert max_active == 1


@pytest.mark.unit
@pytest.mark.asyncio
class TestSchedulerLifecycle:
    async def test_start_and_stop(
        self, build_test_services: Callable[..., Services]
    ) -> None:
        services = build_test_services()
        scheduler = RefreshScheduler(
            services.manager, RefreshSettings(auto_refresh=True, interval_seconds=3600)
        )

        scheduler.start()
        assert scheduler.running is True

        scheduler.stop()
        scheduler.stop()
        assert scheduler.running is False

    async def test_disabled_auto_refresh_never_schedules(
        self, build_test_services: Callable[..., Services]
    ) -> None:
        services = build_test_services()

        services.scheduler.start()

        assert services.scheduler.running is False
