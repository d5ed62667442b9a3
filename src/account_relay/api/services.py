"""Explicit construction of the service graph shared by routes and CLI."""

from dataclasses import dataclass

import httpx

from account_relay.accounts.manager import AccountManager
from account_relay.accounts.persistence import AccountPersistence, JsonAccountPersistence
from account_relay.accounts.store import CredentialStore
from account_relay.auth.gate import AdminGate, ApiKeyVerifier
from account_relay.config.settings import Settings
from account_relay.events.broadcaster import EventBroadcaster
from account_relay.events.jobs import JobRunner
from account_relay.proxy.dispatcher import Dispatcher
from account_relay.proxy.target import ProxyTarget
from account_relay.rotation.selector import AccountSelector
from account_relay.session.refresh import RefreshScheduler
from account_relay.session.tokens import SessionTokenManager


@dataclass
class Services:
    """Everything the HTTP layer needs, wired once per application."""

    settings: Settings
    store: CredentialStore
    persistence: AccountPersistence
    tokens: SessionTokenManager
    manager: AccountManager
    scheduler: RefreshScheduler
    selector: AccountSelector
    target: ProxyTarget
    dispatcher: Dispatcher
    broadcaster: EventBroadcaster
    jobs: JobRunner
    admin_gate: AdminGate
    api_keys: ApiKeyVerifier

    async def aclose(self) -> None:
        """Stop background work and release HTTP clients."""
        self.scheduler.stop()
        await self.jobs.cancel_all()
        await self.dispatcher.aclose()
        await self.tokens.aclose()


def build_services(
    settings: Settings,
    *,
    persistence: AccountPersistence | None = None,
    identity_client: httpx.AsyncClient | None = None,
    upstream_client: httpx.AsyncClient | None = None,
) -> Services:
    """Wire the services for one application instance.

    Args:
        settings: Application settings
        persistence: Account storage; defaults to the JSON file in settings
        identity_client: HTTP client for login and refresh calls
        upstream_client: HTTP client for forwarded requests

    Returns:
        The assembled services, not yet started
    """
    store = CredentialStore()
    if persistence is None:
        persistence = JsonAccountPersistence(settings.storage.accounts_path)
    tokens = SessionTokenManager(settings.upstream, settings.session, identity_client)
    manager = AccountManager(
        store,
        tokens,
        persistence,
        fallback_to_login=settings.session.fallback_to_login,
    )
    selector = AccountSelector()
    target = ProxyTarget(settings.upstream.base_url)
    broadcaster = EventBroadcaster()

    return Services(
        settings=settings,
        store=store,
        persistence=persistence,
        tokens=tokens,
        manager=manager,
        scheduler=RefreshScheduler(manager, settings.refresh),
        selector=selector,
        target=target,
        dispatcher=Dispatcher(
            store,
            selector,
            target,
            settings.upstream,
            settings.proxy,
            upstream_client,
        ),
        broadcaster=broadcaster,
        jobs=JobRunner(broadcaster),
        admin_gate=AdminGate(settings.security.admin_key),
        api_keys=ApiKeyVerifier(settings.security.api_keys),
    )
