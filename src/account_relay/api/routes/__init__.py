"""API routes for the account relay."""

from account_relay.api.routes.accounts import router as accounts_router
from account_relay.api.routes.events import router as events_router
from account_relay.api.routes.health import router as health_router
from account_relay.api.routes.proxy import router as proxy_router
from account_relay.api.routes.proxy import target_router as proxy_target_router


__all__ = [
    "accounts_router",
    "events_router",
    "health_router",
    "proxy_router",
    "proxy_target_router",
]
