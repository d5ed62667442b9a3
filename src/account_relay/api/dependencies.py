"""FastAPI dependencies resolving services from application state."""

from typing import Annotated, cast

from fastapi import Depends, Request

from account_relay.api.services import Services
from account_relay.exceptions import (
    AuthenticationError,
    InsufficientPermissionsError,
    ServiceUnavailableError,
)


def get_services(request: Request) -> Services:
    """Get the service container from app state.

    Raises:
        ServiceUnavailableError: If the application has not been wired
    """
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise ServiceUnavailableError("service not initialized")
    return cast(Services, services)


ServicesDep = Annotated[Services, Depends(get_services)]


async def require_admin(request: Request, services: ServicesDep) -> None:
    """Reject callers that fail the admin gate with 403."""
    if not services.admin_gate.is_authorized(request):
        raise InsufficientPermissionsError("admin key required")


async def require_api_key(request: Request, services: ServicesDep) -> None:
    """Reject proxied requests without a configured API key with 401."""
    if not services.api_keys.verify(request):
        raise AuthenticationError("Invalid or missing API key")


AdminDep = Depends(require_admin)
