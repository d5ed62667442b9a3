"""Application lifecycle management helpers."""

from collections.abc import Awaitable, Callable

from structlog import get_logger
from typing_extensions import TypedDict

from account_relay.api.services import Services
from account_relay.config.settings import Settings


logger = get_logger(__name__)


class LifecycleComponent(TypedDict):
    name: str
    startup: Callable[[Services], Awaitable[None]] | None
    shutdown: Callable[[Services], Awaitable[None]] | None


def _slug(name: str) -> str:
    return name.lower().replace(" ", "_")


async def initialize_account_pool(services: Services) -> None:
    """Load persisted accounts and re-login any with an invalid session."""
    await services.manager.initialize()


async def start_refresh_scheduler(services: Services) -> None:
    services.scheduler.start()


async def stop_refresh_scheduler(services: Services) -> None:
    services.scheduler.stop()


async def cancel_background_jobs(services: Services) -> None:
    await services.jobs.cancel_all()


async def close_upstream_client(services: Services) -> None:
    await services.dispatcher.aclose()


async def close_identity_client(services: Services) -> None:
    await services.tokens.aclose()


LIFECYCLE_COMPONENTS: list[LifecycleComponent] = [
    {
        "name": "Identity Client",
        "startup": None,
        "shutdown": close_identity_client,
    },
    {
        "name": "Upstream Client",
        "startup": None,
        "shutdown": close_upstream_client,
    },
    {
        "name": "Account Pool",
        "startup": initialize_account_pool,
        "shutdown": None,  # Saves happen on every mutation
    },
    {
        "name": "Background Jobs",
        "startup": None,
        "shutdown": cancel_background_jobs,
    },
    {
        "name": "Refresh Scheduler",
        "startup": start_refresh_scheduler,
        "shutdown": stop_refresh_scheduler,
    },
]


async def run_startup_component(
    component: LifecycleComponent, services: Services
) -> None:
    """Execute a single startup component with error handling.

    Args:
        component: Lifecycle component definition
        services: Application services
    """
    if not component["startup"]:
        return

    name = _slug(component["name"])
    try:
        logger.debug(f"starting_{name}")
        await component["startup"](services)
    except (OSError, RuntimeError, ValueError) as e:
        logger.error(
            f"{name}_startup_failed",
            error=str(e),
            component=component["name"],
        )


async def run_shutdown_component(
    component: LifecycleComponent, services: Services
) -> None:
    """Execute a single shutdown component with error handling.

    Args:
        component: Lifecycle component definition
        services: Application services
    """
    if not component["shutdown"]:
        return

    name = _slug(component["name"])
    try:
        logger.debug(f"stopping_{name}")
        await component["shutdown"](services)
    except (OSError, RuntimeError) as e:
        logger.error(
            f"{name}_shutdown_failed",
            error=str(e),
            component=component["name"],
        )


async def execute_startup_sequence(
    components: list[LifecycleComponent], services: Services
) -> None:
    """Execute all startup components in order."""
    for component in components:
        await run_startup_component(component, services)


async def execute_shutdown_sequence(
    components: list[LifecycleComponent], services: Services
) -> None:
    """Execute all shutdown components in reverse order."""
    for component in reversed(components):
        await run_shutdown_component(component, services)


def log_server_start(settings: Settings) -> None:
    """Log server startup information.

    Args:
        settings: Application settings
    """
    logger.info(
        "server_start",
        host=settings.server.host,
        port=settings.server.port,
        url=settings.server_url,
    )
    logger.debug(
        "upstream_configured",
        target=settings.upstream.base_url or None,
        login_url=settings.upstream.login_url or None,
        refresh_url=settings.upstream.refresh_url or None,
        admin_gate=bool(settings.security.admin_key),
        api_keys=len(settings.security.api_keys),
    )
