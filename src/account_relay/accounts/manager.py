"""Account management on top of the credential store.

Ties together the store, the session token manager and persistence. Network
calls (login, refresh) always happen before the store lock is taken; the
store is only touched to apply the result.
"""

from dataclasses import dataclass, field
from typing import Any

from structlog import get_logger

from account_relay.accounts.models import Account
from account_relay.accounts.persistence import AccountPersistence
from account_relay.accounts.store import CredentialStore
from account_relay.exceptions import (
    AuthFailure,
    ConflictError,
    NotFoundError,
    PersistenceError,
    RefreshFailure,
    ValidationError,
)
from account_relay.session.tokens import SessionTokenManager


logger = get_logger(__name__)


@dataclass
class BatchAddResult:
    """Per-item outcome of a bulk account import."""

    total: int = 0
    added: list[str] = field(default_factory=list)
    failed: list[dict[str, str]] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.added)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "successCount": self.success_count,
            "failed": self.failed,
        }


def parse_account_lines(text: str) -> list[str]:
    """Split a newline-separated ``email:password`` list into non-empty lines."""
    return [line.strip() for line in text.splitlines() if line.strip()]


class AccountManager:
    """Creates, removes and renews accounts in the pool."""

    def __init__(
        self,
        store: CredentialStore,
        tokens: SessionTokenManager,
        persistence: AccountPersistence,
        fallback_to_login: bool = True,
    ) -> None:
        self.store = store
        self.tokens = tokens
        self.persistence = persistence
        self.fallback_to_login = fallback_to_login
        self.initialized = False

    async def initialize(self, relogin: bool = True) -> None:
        """Load persisted accounts and re-login any whose session is invalid.

        Accounts whose re-login fails are kept as they are; the refresh
        scheduler will retry them. With ``relogin`` off the records are
        loaded as stored.
        """
        loaded = await self.persistence.load_accounts()

        for account in loaded:
            current = account
            if relogin and not self.tokens.validate(
                account.session_token, account.session_expires_at
            ):
                logger.info("session_invalid_relogin", account=account.identifier)
                try:
                    grant = await self.tokens.login(account.identifier, account.secret)
                except AuthFailure as e:
                    logger.warning(
                        "startup_relogin_failed",
                        account=account.identifier,
                        error=e.reason,
                    )
                else:
                    current = account.with_session(grant.token, grant.expires_at)
                    await self._persist(current)

            await self.store.add(current)

        self.initialized = True
        logger.info(
            "account_manager_initialized",
            accounts=len(self.store),
            with_session=sum(1 for a in self.store.snapshot() if a.has_session),
        )

    async def _persist(self, account: Account) -> bool:
        saved = await self.persistence.save_account(account.identifier, account)
        if not saved:
            logger.error("account_not_persisted", account=account.identifier)
        return saved

    def get_all_accounts(self) -> list[Account]:
        return self.store.snapshot()

    async def add_account(self, identifier: str, secret: str) -> Account:
        """Log in and add a new account.

        Raises:
            ValidationError: If identifier or secret is blank
            ConflictError: If the identifier is already in the pool
            AuthFailure: If login fails
            PersistenceError: If the new record could not be saved; it is not
                kept in the pool
        """
        identifier = identifier.strip()
        if not identifier or not secret:
            raise ValidationError("email and password are required")

        if identifier in self.store:
            logger.warning("account_add_duplicate", account=identifier)
            raise ConflictError(f"Account {identifier} already exists")

        grant = await self.tokens.login(identifier, secret)
        account = Account(
            identifier=identifier,
            secret=secret,
            session_token=grant.token,
            session_expires_at=grant.expires_at,
        )

        # Another request may have added the same identifier during login
        if not await self.store.add(account):
            raise ConflictError(f"Account {identifier} already exists")

        if not await self._persist(account):
            # Not durable, so not added
            await self.store.remove(identifier)
            raise PersistenceError(identifier)
        return account

    async def add_accounts_batch(self, lines: list[str]) -> BatchAddResult:
        """Add ``email:password`` lines one at a time, recording each outcome."""
        result = BatchAddResult(total=len(lines))

        for line in lines:
            identifier, sep, secret = line.partition(":")
            identifier = identifier.strip()
            if not sep or not identifier or not secret:
                result.failed.append({"email": identifier or line, "reason": "invalid"})
                continue

            if identifier in self.store:
                result.failed.append({"email": identifier, "reason": "exists"})
                continue

            try:
                await self.add_account(identifier, secret)
            except ConflictError:
                result.failed.append({"email": identifier, "reason": "exists"})
            except (AuthFailure, PersistenceError, ValidationError) as e:
                logger.warning("batch_add_item_failed", account=identifier, error=e.message)
                result.failed.append({"email": identifier, "reason": "failed"})
            else:
                result.added.append(identifier)

        logger.info(
            "batch_add_complete",
            total=result.total,
            succeeded=result.success_count,
            failed=len(result.failed),
        )
        return result

    async def remove_account(self, identifier: str) -> Account:
        """Remove an account and rewrite persistence.

        Raises:
            NotFoundError: If the account does not exist
        """
        removed = await self.store.remove(identifier)
        if removed is None:
            raise NotFoundError(f"Account {identifier} not found")

        if not await self.persistence.save_all_accounts(self.store.snapshot()):
            logger.error("account_removal_not_persisted", account=identifier)
        return removed

    async def refresh_one(self, account: Account) -> Account:
        """Renew one account's session and apply it.

        Raises:
            RefreshFailure: If no new session could be obtained; the stored
                record keeps its previous token
        """
        updated = await self.tokens.refresh(account)

        if updated is None and self.fallback_to_login and self.tokens.can_exchange(account):
            logger.info("session_exchange_failed_relogin", account=account.identifier)
            try:
                grant = await self.tokens.login(account.identifier, account.secret)
            except AuthFailure:
                updated = None
            else:
                updated = account.with_session(grant.token, grant.expires_at)

        if updated is None:
            raise RefreshFailure(account.identifier)

        if not await self.store.replace(updated):
            # Removed while the refresh was in flight; do not resurrect it
            raise RefreshFailure(account.identifier, "account removed during refresh")

        # The new session is live in memory even if the write fails
        await self._persist(updated)
        return updated

    async def refresh_account(self, identifier: str) -> Account:
        """Refresh a single account by identifier.

        Raises:
            NotFoundError: If the account does not exist
            RefreshFailure: If the refresh fails
        """
        account = self.store.get(identifier)
        if account is None:
            raise NotFoundError(f"Account {identifier} not found")
        return await self.refresh_one(account)

    def health_stats(self, threshold_hours: float = 24) -> dict[str, Any]:
        return {
            "accounts": self.tokens.health_stats(self.store.snapshot(), threshold_hours),
            "initialized": self.initialized,
        }
