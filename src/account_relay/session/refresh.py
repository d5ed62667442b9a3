"""Background session refresh scheduler.

Periodically scans the pool for sessions close to expiry and renews them one
at a time, pausing between attempts so the upstream login endpoint never
sees a burst. The manual "refresh all" and "force refresh" operations run
the exact same cycle with a different threshold.
"""

import asyncio
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from structlog import get_logger

from account_relay.accounts.manager import AccountManager
from account_relay.config.refresh import RefreshSettings
from account_relay.exceptions import RelayError


logger = get_logger(__name__)

# One year: large enough to include every account
FORCE_REFRESH_THRESHOLD_HOURS = 8760

REFRESH_JOB_ID = "session_refresh_scan"


class SchedulerState(StrEnum):
    """Phases of a refresh cycle."""

    IDLE = "idle"
    SCANNING = "scanning"
    REFRESHING = "refreshing"


@dataclass
class RefreshReport:
    """Aggregate outcome of one refresh cycle."""

    threshold_hours: float
    candidates: int = 0
    succeeded: int = 0
    failed: int = 0
    failed_identifiers: list[str] = field(default_factory=list)
    skipped: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "thresholdHours": self.threshold_hours,
            "candidates": self.candidates,
            "successCount": self.succeeded,
            "failedCount": self.failed,
            "failed": self.failed_identifiers,
            "skipped": self.skipped,
        }


class RefreshScheduler:
    """Scheduled and on-demand session refresh over the account pool.

    Features:
    - Interval job via APScheduler, started and stopped explicitly
    - Serial refreshes with a fixed delay between attempts
    - One account's failure never aborts the batch
    - Cycles never overlap (manual and scheduled share a lock)
    """

    def __init__(self, manager: AccountManager, settings: RefreshSettings) -> None:
        """Initialize the refresh scheduler.

        Args:
            manager: Account manager owning the store and token manager
            settings: Interval, threshold and delay configuration
        """
        self.manager = manager
        self.settings = settings
        self.state = SchedulerState.IDLE
        self.last_report: RefreshReport | None = None
        self._scheduler: AsyncIOScheduler | None = None
        self._cycle_lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._scheduler is not None

    def start(self) -> None:
        """Register the recurring scan. Must be called with a running event loop."""
        if self._scheduler is not None:
            logger.warning("refresh_scheduler_already_running")
            return

        if not self.settings.auto_refresh:
            logger.info("refresh_scheduler_disabled")
            return

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self.run_cycle,
            "interval",
            seconds=self.settings.interval_seconds,
            id=REFRESH_JOB_ID,
            name="Session Refresh Scan",
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()

        logger.info(
            "refresh_scheduler_started",
            interval_seconds=self.settings.interval_seconds,
            threshold_hours=self.settings.threshold_hours,
        )

    def stop(self) -> None:
        """Cancel the recurring scan. Safe to call more than once."""
        if self._scheduler is None:
            return

        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("refresh_scheduler_stopped")

    async def run_cycle(self, threshold_hours: float | None = None) -> RefreshReport:
        """Refresh every session expiring within ``threshold_hours``.

        Args:
            threshold_hours: Override for the configured threshold

        Returns:
            Aggregate success and failure counts
        """
        if threshold_hours is None:
            threshold_hours = self.settings.threshold_hours

        report = RefreshReport(threshold_hours=threshold_hours)

        if not self.manager.initialized:
            logger.warning("refresh_skipped_not_initialized")
            report.skipped = True
            return report

        async with self._cycle_lock:
            try:
                await self._run_locked(report)
            finally:
                self.state = SchedulerState.IDLE

        self.last_report = report
        return report

    async def _run_locked(self, report: RefreshReport) -> None:
        self.state = SchedulerState.SCANNING
        tokens = self.manager.tokens
        candidates = [
            account
            for account in self.manager.store.snapshot()
            if tokens.is_expiring_soon(account.session_expires_at, report.threshold_hours)
        ]
        report.candidates = len(candidates)

        if not candidates:
            logger.info("refresh_no_candidates", threshold_hours=report.threshold_hours)
            return

        logger.info(
            "refresh_cycle_start",
            candidates=len(candidates),
            threshold_hours=report.threshold_hours,
        )

        self.state = SchedulerState.REFRESHING
        for index, account in enumerate(candidates):
            if index > 0 and self.settings.delay_seconds > 0:
                await asyncio.sleep(self.settings.delay_seconds)

            try:
                await self.manager.refresh_one(account)
            except RelayError as e:
                report.failed += 1
                report.failed_identifiers.append(account.identifier)
                logger.error(
                    "session_refresh_failed",
                    account=account.identifier,
                    error=e.message,
                    failed=report.failed,
                )
            except Exception as e:  # noqa: BLE001 - one account must not abort the batch
                report.failed += 1
                report.failed_identifiers.append(account.identifier)
                logger.exception(
                    "session_refresh_error",
                    account=account.identifier,
                    error=str(e),
                )
            else:
                report.succeeded += 1
                logger.info(
                    "session_refresh_success",
                    account=account.identifier,
                    progress=f"{report.succeeded}/{report.candidates}",
                )

        logger.info(
            "refresh_cycle_complete",
            succeeded=report.succeeded,
            failed=report.failed,
        )
