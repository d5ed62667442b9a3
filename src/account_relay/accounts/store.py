"""In-memory credential store.

Holds accounts keyed by identifier in insertion order. Mutations are
serialized with an asyncio lock and swap whole immutable records, so
snapshot readers (selector, dispatcher, scheduler) never wait and never see
a partially updated account.
"""

import asyncio
from collections.abc import Iterable

from structlog import get_logger

from account_relay.accounts.models import Account


logger = get_logger(__name__)


class CredentialStore:
    """Ordered, identifier-keyed collection of accounts."""

    def __init__(self, accounts: Iterable[Account] | None = None) -> None:
        self._accounts: dict[str, Account] = {}
        self._lock = asyncio.Lock()
        for account in accounts or ():
            if account.identifier in self._accounts:
                logger.warning("duplicate_account_skipped", account=account.identifier)
                continue
            self._accounts[account.identifier] = account

    def __len__(self) -> int:
        return len(self._accounts)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._accounts

    def get(self, identifier: str) -> Account | None:
        """Get account by identifier."""
        return self._accounts.get(identifier)

    def snapshot(self) -> list[Account]:
        """Get all accounts in insertion order."""
        return list(self._accounts.values())

    async def add(self, account: Account) -> bool:
        """Add a new account.

        Returns:
            True if added, False if the identifier already exists (the
            existing record is left untouched)
        """
        async with self._lock:
            if account.identifier in self._accounts:
                logger.warning("account_already_exists", account=account.identifier)
                return False
            self._accounts[account.identifier] = account

        logger.info("account_added", account=account.identifier)
        return True

    async def remove(self, identifier: str) -> Account | None:
        """Remove an account.

        Returns:
            The removed account, or None if not found
        """
        async with self._lock:
            removed = self._accounts.pop(identifier, None)

        if removed is None:
            logger.warning("account_not_found", account=identifier)
        else:
            logger.info("account_removed", account=identifier)
        return removed

    async def replace(self, account: Account) -> bool:
        """Swap in a new record for an existing identifier.

        Matching is by identifier, so concurrent adds and removes never cause
        the wrong record to be overwritten. A record removed while its
        refresh was in flight stays removed.

        Returns:
            True if replaced, False if the identifier is no longer present
        """
        async with self._lock:
            if account.identifier not in self._accounts:
                logger.debug("account_replace_skipped", account=account.identifier)
                return False
            self._accounts[account.identifier] = account
        return True
