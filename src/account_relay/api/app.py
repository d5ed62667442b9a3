"""FastAPI application factory for the account relay."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from structlog import get_logger

from account_relay import __version__
from account_relay.api.lifecycle import (
    LIFECYCLE_COMPONENTS,
    execute_shutdown_sequence,
    execute_startup_sequence,
    log_server_start,
)
from account_relay.api.middleware.errors import setup_error_handlers
from account_relay.api.middleware.logging import AccessLogMiddleware
from account_relay.api.middleware.request_id import RequestIDMiddleware
from account_relay.api.routes import (
    accounts_router,
    events_router,
    health_router,
    proxy_router,
    proxy_target_router,
)
from account_relay.api.services import Services, build_services
from account_relay.config.settings import Settings, get_settings
from account_relay.core.logging import setup_logging


logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager using component-based approach."""
    services: Services = app.state.services

    # Startup
    log_server_start(services.settings)
    await execute_startup_sequence(LIFECYCLE_COMPONENTS, services)

    yield

    # Shutdown
    logger.debug("server_stop")
    await execute_shutdown_sequence(LIFECYCLE_COMPONENTS, services)


def create_app(
    settings: Settings | None = None, services: Services | None = None
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional settings override. If None, uses get_settings().
        services: Optional pre-built services (tests inject HTTP clients here)

    Returns:
        Configured FastAPI application instance.
    """
    if services is not None:
        settings = services.settings
    elif settings is None:
        settings = get_settings()

    if not structlog.is_configured():
        setup_logging(
            json_logs=settings.server.log_json,
            log_level_name=settings.server.log_level,
            log_file=settings.server.log_file,
        )

    app = FastAPI(
        title="Account Relay",
        description="Account pool with session rotation and a passthrough proxy",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.services = services or build_services(settings)

    setup_error_handlers(app)

    # Access log runs inside the request ID context (middleware order is reversed)
    app.add_middleware(AccessLogMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.include_router(health_router)
    app.include_router(accounts_router)
    app.include_router(proxy_target_router)
    app.include_router(events_router)

    # Catch-all forwarding must be registered after every explicit /api route
    app.include_router(proxy_router)

    return app


def get_app() -> FastAPI:
    """Get the FastAPI application instance (uvicorn factory entry point)."""
    return create_app()
