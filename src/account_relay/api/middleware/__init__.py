"""API middleware for the account relay."""

from account_relay.api.middleware.errors import (
    build_error_response,
    relay_error_response,
    setup_error_handlers,
)
from account_relay.api.middleware.logging import AccessLogMiddleware
from account_relay.api.middleware.request_id import RequestIDMiddleware


__all__ = [
    "AccessLogMiddleware",
    "RequestIDMiddleware",
    "build_error_response",
    "relay_error_response",
    "setup_error_handlers",
]
