"""Liveness endpoint with pool awareness."""

from datetime import UTC, datetime

from fastapi import APIRouter
from pydantic import BaseModel, Field

from account_relay.api.dependencies import ServicesDep


router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="healthy when at least one account holds a session")
    accounts: int = Field(description="Number of accounts in the pool")
    timestamp: str = Field(description="Current server timestamp")


@router.get("/health", response_model=HealthResponse)
async def health_check(services: ServicesDep) -> HealthResponse:
    """Report service health and pool size."""
    accounts = services.store.snapshot()
    available = sum(1 for account in accounts if account.has_session)
    return HealthResponse(
        status="healthy" if available > 0 else "degraded",
        accounts=len(accounts),
        timestamp=datetime.now(UTC).isoformat(),
    )
