"""Error handling middleware for the account relay.

Provides unified error handling for all RelayError subclasses
using their built-in error_type and status_code attributes.
"""

from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status
from starlette.exceptions import HTTPException as StarletteHTTPException
from structlog import get_logger

from account_relay.exceptions import ErrorType, RelayError


logger = get_logger(__name__)


def _get_client_ip(request: Request) -> str:
    """Get client IP from request."""
    return request.client.host if request.client else "unknown"


def build_error_response(
    status_code: int,
    error_type: str,
    message: str,
    detail: Any = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Build standardized error response."""
    error: dict[str, Any] = {"type": error_type, "message": message}
    if detail is not None:
        error["detail"] = detail
    return JSONResponse(
        status_code=status_code,
        content={"error": error},
        headers=headers,
    )


def relay_error_response(
    request: Request,
    exc: RelayError,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Log a RelayError and render it as the standard error payload."""
    error_type = str(exc.error_type)

    log_kwargs: dict[str, Any] = {
        "error_type": error_type,
        "error_message": exc.message,
        "status_code": exc.status_code,
        "request_method": request.method,
        "request_url": str(request.url.path),
    }

    # Add client IP for auth-related errors
    if exc.status_code in (401, 403):
        log_kwargs["client_ip"] = _get_client_ip(request)

    if exc.status_code >= 500:
        logger.error(type(exc).__name__, **log_kwargs)
    else:
        logger.warning(type(exc).__name__, **log_kwargs)

    return build_error_response(
        exc.status_code,
        error_type,
        exc.message,
        detail=exc.details.get("detail"),
        headers=headers,
    )


def setup_error_handlers(app: FastAPI) -> None:
    """Setup error handlers for the FastAPI application."""
    logger.debug("error_handlers_setup_start")

    @app.exception_handler(RelayError)
    async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
        """Handle all RelayError subclasses using their built-in attributes."""
        return relay_error_response(request, exc)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Malformed request bodies are reported as 400."""
        errors = exc.errors()
        message = errors[0].get("msg", "invalid request") if errors else "invalid request"
        logger.warning(
            "request_validation_failed",
            error_message=message,
            request_method=request.method,
            request_url=str(request.url.path),
        )
        return build_error_response(
            status.HTTP_400_BAD_REQUEST,
            ErrorType.INVALID_REQUEST.value,
            message,
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(
        request: Request, exc: HTTPException
    ) -> JSONResponse:
        """Handle FastAPI HTTP exceptions."""
        log_kwargs = {
            "error_type": f"http_{exc.status_code}",
            "error_message": exc.detail,
            "status_code": exc.status_code,
            "request_method": request.method,
            "request_url": str(request.url.path),
        }

        if exc.status_code == 404:
            logger.debug("HTTP 404", **log_kwargs)
        elif exc.status_code == 401:
            logger.warning("HTTP 401", **log_kwargs)
        else:
            logger.error("HTTP exception", **log_kwargs)

        return build_error_response(exc.status_code, "http_error", str(exc.detail))

    @app.exception_handler(StarletteHTTPException)
    async def starlette_http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        """Handle Starlette HTTP exceptions."""
        log_kwargs = {
            "error_type": f"starlette_http_{exc.status_code}",
            "error_message": exc.detail,
            "status_code": exc.status_code,
            "request_method": request.method,
            "request_url": str(request.url.path),
        }

        if exc.status_code == 404:
            logger.debug("Starlette HTTP 404", **log_kwargs)
        else:
            logger.error("Starlette HTTP exception", **log_kwargs)

        return build_error_response(exc.status_code, "http_error", str(exc.detail))

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle all other unhandled exceptions."""
        logger.error(
            "Unhandled exception",
            error_type="unhandled_exception",
            error_message=str(exc),
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            request_method=request.method,
            request_url=str(request.url.path),
            exc_info=True,
        )

        return build_error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            ErrorType.INTERNAL_SERVER.value,
            "An internal server error occurred",
        )

    logger.debug("error_handlers_setup_completed")
