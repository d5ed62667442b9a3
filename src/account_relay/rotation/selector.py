"""Round-robin account selection.

Picks from the accounts currently holding a session token. The position
counter is owned by the selector and only ever advances; it is not reset
when pool membership changes, so a changing pool may bias picks briefly but
converges to an even rotation.
"""

from collections.abc import Sequence
from itertools import count

from structlog import get_logger

from account_relay.accounts.models import Account
from account_relay.accounts.store import CredentialStore


logger = get_logger(__name__)


class AccountSelector:
    """Stateless-over-the-pool round-robin picker."""

    def __init__(self) -> None:
        # next() on itertools.count is atomic, so concurrent picks never share an index
        self._counter = count()

    def pick(self, accounts: Sequence[Account]) -> Account | None:
        """Pick the next token-bearing account from ``accounts``.

        Returns:
            Next eligible account, or None if none holds a session
        """
        eligible = [account for account in accounts if account.has_session]
        if not eligible:
            logger.warning("no_account_available", total=len(accounts))
            return None

        account = eligible[next(self._counter) % len(eligible)]
        logger.debug("account_selected", account=account.identifier)
        return account

    def select(self, store: CredentialStore) -> Account | None:
        """Pick from a snapshot of ``store``."""
        return self.pick(store.snapshot())
