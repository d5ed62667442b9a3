"""Account pool management API routes.

Endpoints:
    GET    /api/accounts               - List accounts (paginated, tokens masked)
    POST   /api/accounts               - Add one account (background job)
    POST   /api/accounts/batch         - Add many accounts (background job)
    DELETE /api/accounts               - Remove an account
    POST   /api/accounts/refresh       - Refresh one account's session
    POST   /api/accounts/refresh-all   - Refresh sessions expiring soon
    POST   /api/accounts/force-refresh - Refresh every session
    GET    /api/accounts/health        - Token health statistics

Security:
    Every endpoint sits behind the admin gate.
"""

from typing import Any

from fastapi import APIRouter, Query, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from account_relay.accounts.manager import parse_account_lines
from account_relay.api.dependencies import AdminDep, ServicesDep
from account_relay.exceptions import ConflictError, ValidationError
from account_relay.session.refresh import FORCE_REFRESH_THRESHOLD_HOURS


router = APIRouter(prefix="/api/accounts", tags=["accounts"], dependencies=[AdminDep])

ADD_DONE_EVENT = "account:add:done"
BATCH_ADD_DONE_EVENT = "account:batchAdd:done"


# ============================================================================
# Request Models
# ============================================================================


class AccountCredentials(BaseModel):
    """Request model for adding one account."""

    email: str = Field(default="", description="Account identifier")
    password: str = Field(default="", description="Account secret")


class AccountBatch(BaseModel):
    """Request model for bulk import."""

    accounts: str = Field(
        default="", description="Newline-separated email:password pairs"
    )


class AccountReference(BaseModel):
    """Request model naming an existing account."""

    email: str = Field(default="", description="Account identifier")


class RefreshAllRequest(BaseModel):
    """Request model for a threshold-based refresh."""

    model_config = ConfigDict(populate_by_name=True)

    threshold_hours: float = Field(
        default=24,
        ge=0,
        validation_alias="thresholdHours",
        description="Refresh sessions expiring within this many hours",
    )


# ============================================================================
# API Endpoints
# ============================================================================


@router.get("", summary="List accounts")
async def list_accounts(
    services: ServicesDep,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=1000, ge=1),
) -> dict[str, Any]:
    """List accounts with masked session tokens. Secrets are never returned."""
    accounts = services.manager.get_all_accounts()
    start = (page - 1) * page_size
    return {
        "total": len(accounts),
        "page": page,
        "pageSize": page_size,
        "data": [account.public_dict() for account in accounts[start : start + page_size]],
    }


@router.post("", status_code=status.HTTP_202_ACCEPTED, summary="Add account")
async def add_account(body: AccountCredentials, services: ServicesDep) -> dict[str, Any]:
    """Submit a login for a new account.

    The response is sent before the login happens; the outcome arrives as an
    ``account:add:done`` event.

    Raises:
        ValidationError: If email or password is blank
        ConflictError: If the account already exists
    """
    email = body.email.strip()
    if not email or not body.password:
        raise ValidationError("email and password are required")
    if email in services.store:
        raise ConflictError(f"Account {email} already exists")

    async def job() -> dict[str, Any]:
        await services.manager.add_account(email, body.password)
        return {"success": True}

    job_id = services.jobs.submit("add", ADD_DONE_EVENT, job, {"email": email})
    return {"message": "add job submitted", "jobId": job_id, "email": email}


@router.post("/batch", status_code=status.HTTP_202_ACCEPTED, summary="Add accounts")
async def add_accounts_batch(body: AccountBatch, services: ServicesDep) -> dict[str, Any]:
    """Submit a bulk import of ``email:password`` lines.

    The outcome arrives as an ``account:batchAdd:done`` event with one entry
    per failed line.
    """
    lines = parse_account_lines(body.accounts)
    if not lines:
        raise ValidationError("account list is empty")

    async def job() -> dict[str, Any]:
        result = await services.manager.add_accounts_batch(lines)
        return result.to_dict()

    job_id = services.jobs.submit("batch", BATCH_ADD_DONE_EVENT, job, {"total": len(lines)})
    return {"message": "batch job submitted", "jobId": job_id, "total": len(lines)}


@router.delete("", summary="Remove account")
async def remove_account(body: AccountReference, services: ServicesDep) -> dict[str, Any]:
    """Remove an account and persist the remaining pool.

    Raises:
        NotFoundError: If the account does not exist
    """
    email = body.email.strip()
    if not email:
        raise ValidationError("email is required")
    await services.manager.remove_account(email)
    return {"message": "account removed", "email": email}


@router.post("/refresh", summary="Refresh one account")
async def refresh_account(body: AccountReference, services: ServicesDep) -> dict[str, Any]:
    """Renew one account's session now.

    Raises:
        ValidationError: If email is blank
        NotFoundError: If the account does not exist
        RefreshFailure: If no new session could be obtained
    """
    email = body.email.strip()
    if not email:
        raise ValidationError("email is required")
    account = await services.manager.refresh_account(email)
    return {
        "message": "session refreshed",
        "email": email,
        "account": account.public_dict(),
    }


@router.post("/refresh-all", summary="Refresh expiring sessions")
async def refresh_all(services: ServicesDep, body: RefreshAllRequest | None = None) -> dict[str, Any]:
    """Run a refresh cycle now for sessions expiring within the threshold."""
    threshold_hours = body.threshold_hours if body else 24
    report = await services.scheduler.run_cycle(threshold_hours)
    return {
        "message": "refresh cycle complete",
        "thresholdHours": threshold_hours,
        "refreshedCount": report.succeeded,
        "report": report.to_dict(),
    }


@router.post("/force-refresh", summary="Refresh every session")
async def force_refresh(services: ServicesDep) -> dict[str, Any]:
    """Run a refresh cycle covering every account regardless of expiry."""
    report = await services.scheduler.run_cycle(FORCE_REFRESH_THRESHOLD_HOURS)
    return {
        "message": "force refresh complete",
        "refreshedCount": report.succeeded,
        "totalAccounts": len(services.store),
        "report": report.to_dict(),
    }


@router.get("/health", summary="Token health")
async def accounts_health(services: ServicesDep) -> JSONResponse:
    """Token validity counts plus scheduler state."""
    stats = services.manager.health_stats(services.settings.refresh.threshold_hours)
    last_report = services.scheduler.last_report
    return JSONResponse(
        content={
            **stats,
            "scheduler": {
                "running": services.scheduler.running,
                "state": services.scheduler.state.value,
                "intervalSeconds": services.settings.refresh.interval_seconds,
                "lastReport": last_report.to_dict() if last_report else None,
            },
        }
    )
