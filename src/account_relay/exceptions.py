"""Exception hierarchy for account-relay.

Every error carries an HTTP status code and an ``ErrorType`` so the API
layer can turn it into a structured payload without extra mapping.
"""

from enum import StrEnum
from typing import Any

from starlette import status


class ErrorType(StrEnum):
    """Error type codes for API responses."""

    INVALID_REQUEST = "invalid_request_error"
    AUTHENTICATION = "authentication_error"
    PERMISSION = "permission_error"
    NOT_FOUND = "not_found_error"
    CONFLICT = "conflict_error"
    TIMEOUT = "timeout_error"
    BAD_GATEWAY = "bad_gateway_error"
    SERVICE_UNAVAILABLE = "service_unavailable_error"
    REFRESH = "refresh_error"
    INTERNAL_SERVER = "internal_server_error"


class RelayError(Exception):
    """Base exception for all account-relay errors."""

    def __init__(
        self,
        message: str,
        *,
        error_type: ErrorType | str = ErrorType.INTERNAL_SERVER,
        status_code: int = 500,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if isinstance(error_type, str) and not isinstance(error_type, ErrorType):
            try:
                self.error_type = ErrorType(error_type)
            except ValueError:
                self.error_type = error_type  # type: ignore[assignment]
        else:
            self.error_type = error_type
        self.status_code = status_code
        self.details = details or {}


# ============================================================================
# Client-facing errors
# ============================================================================


class ValidationError(RelayError):
    """Validation error (400)."""

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            message,
            error_type=ErrorType.INVALID_REQUEST,
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details,
        )


class AuthenticationError(RelayError):
    """Inbound request is not authenticated (401)."""

    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(
            message,
            error_type=ErrorType.AUTHENTICATION,
            status_code=status.HTTP_401_UNAUTHORIZED,
        )


class InsufficientPermissionsError(RelayError):
    """Caller failed the administrative gate (403)."""

    def __init__(self, message: str = "Permission denied") -> None:
        super().__init__(
            message,
            error_type=ErrorType.PERMISSION,
            status_code=status.HTTP_403_FORBIDDEN,
        )


class NotFoundError(RelayError):
    """Not found error (404)."""

    def __init__(self, message: str = "not found") -> None:
        super().__init__(
            message,
            error_type=ErrorType.NOT_FOUND,
            status_code=status.HTTP_404_NOT_FOUND,
        )


class ConflictError(RelayError):
    """Resource already exists (409)."""

    def __init__(self, message: str = "Resource already exists") -> None:
        super().__init__(
            message,
            error_type=ErrorType.CONFLICT,
            status_code=status.HTTP_409_CONFLICT,
        )


class ServiceUnavailableError(RelayError):
    """Service unavailable error (503)."""

    def __init__(self, message: str = "Service temporarily unavailable") -> None:
        super().__init__(
            message,
            error_type=ErrorType.SERVICE_UNAVAILABLE,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )


# ============================================================================
# Session lifecycle errors
# ============================================================================


class AuthFailure(RelayError):
    """Upstream identity service rejected the credentials or was unreachable."""

    def __init__(self, identifier: str, reason: str) -> None:
        super().__init__(
            f"Login failed for {identifier}: {reason}",
            error_type=ErrorType.AUTHENTICATION,
            status_code=status.HTTP_401_UNAUTHORIZED,
            details={"identifier": identifier},
        )
        self.identifier = identifier
        self.reason = reason


class RefreshFailure(RelayError):
    """A single account's session could not be renewed.

    The previous token stays in place; callers count and log it.
    """

    def __init__(self, identifier: str, reason: str = "refresh failed") -> None:
        super().__init__(
            f"Session refresh failed for {identifier}: {reason}",
            error_type=ErrorType.REFRESH,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details={"identifier": identifier},
        )
        self.identifier = identifier


class NoHealthyAccount(ServiceUnavailableError):
    """No account in the pool holds a session token."""

    def __init__(self, message: str = "no available account") -> None:
        super().__init__(message)


# ============================================================================
# Dispatcher transport errors
# ============================================================================


class TransportTimeout(RelayError):
    """Upstream call timed out (504)."""

    def __init__(self, detail: str) -> None:
        super().__init__(
            "gateway timeout",
            error_type=ErrorType.TIMEOUT,
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            details={"detail": detail},
        )


class TransportError(RelayError):
    """Upstream call failed below the HTTP layer (502)."""

    def __init__(self, detail: str) -> None:
        super().__init__(
            "bad gateway",
            error_type=ErrorType.BAD_GATEWAY,
            status_code=status.HTTP_502_BAD_GATEWAY,
            details={"detail": detail},
        )


# ============================================================================
# Storage errors
# ============================================================================


class PersistenceError(RelayError):
    """Account records could not be written to storage (500)."""

    def __init__(self, identifier: str) -> None:
        super().__init__(
            f"Account {identifier} could not be saved",
            error_type=ErrorType.INTERNAL_SERVER,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details={"identifier": identifier},
        )
        self.identifier = identifier
