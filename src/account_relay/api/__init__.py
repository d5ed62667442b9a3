"""API layer for the account relay."""

from account_relay.api.app import create_app, get_app
from account_relay.api.dependencies import ServicesDep, get_services
from account_relay.api.services import Services, build_services


__all__ = [
    "Services",
    "ServicesDep",
    "build_services",
    "create_app",
    "get_app",
    "get_services",
]
