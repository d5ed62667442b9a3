"""Access logging middleware for structured HTTP request/response logging."""

import asyncio
import time

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint


logger = structlog.get_logger(__name__)


class AccessLogMiddleware(BaseHTTPMiddleware):
    """Middleware for structured access logging with request/response details."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Process the request and log access details.

        Args:
            request: The incoming HTTP request
            call_next: The next middleware/handler in the chain

        Returns:
            The HTTP response
        """
        start_time = time.perf_counter()
        client_ip = request.client.host if request.client else "unknown"
        method = request.method
        path = str(request.url.path)
        query = str(request.url.query) if request.url.query else None
        request_id = getattr(request.state, "request_id", None)

        try:
            response = await call_next(request)
        except (Exception, asyncio.CancelledError) as e:
            logger.exception(
                "request_error",
                request_id=request_id,
                method=method,
                path=path,
                query=query,
                client_ip=client_ip,
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
                error_message=str(e) or type(e).__name__,
            )
            raise

        logger.info(
            "request_complete",
            request_id=request_id or "unknown",
            method=method,
            path=path,
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
            client_ip=client_ip,
            user_agent=request.headers.get("user-agent", "unknown"),
            query=query,
        )
        return response
