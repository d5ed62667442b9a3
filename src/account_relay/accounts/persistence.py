"""Persistence for account records.

The core talks to storage through ``AccountPersistence``; the default
backend keeps a JSON file with the same write-to-temp-then-rename discipline
for every save.
"""

from collections.abc import Iterable
from pathlib import Path
from typing import Any, Protocol

import orjson
from structlog import get_logger

from account_relay.accounts.models import Account


logger = get_logger(__name__)

ACCOUNTS_FILE_VERSION = 1


class AccountPersistence(Protocol):
    """Storage collaborator for account records."""

    async def save_account(self, identifier: str, account: Account) -> bool: ...

    async def save_all_accounts(self, accounts: Iterable[Account]) -> bool: ...

    async def load_accounts(self) -> list[Account]: ...


class JsonAccountPersistence:
    """Accounts stored in a single JSON file.

    File layout::

        {"version": 1, "accounts": {"<identifier>": {"secret": ..., ...}}}
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path).expanduser()

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {"version": ACCOUNTS_FILE_VERSION, "accounts": {}}

        with self.path.open("rb") as f:
            data = orjson.loads(f.read())

        if not isinstance(data, dict):
            raise ValueError(
                f"Invalid accounts file format: expected object, got {type(data)}"
            )
        if not isinstance(data.get("accounts", {}), dict):
            raise ValueError("Invalid accounts file: 'accounts' must be an object")
        data.setdefault("accounts", {})
        return data

    def _write(self, data: dict[str, Any]) -> bool:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            temp_path = self.path.with_suffix(".json.tmp")
            with temp_path.open("wb") as f:
                f.write(orjson.dumps(data, option=orjson.OPT_INDENT_2))
            temp_path.replace(self.path)
            logger.debug(
                "accounts_saved",
                path=str(self.path),
                count=len(data.get("accounts", {})),
            )
            return True
        except OSError as e:
            # File system errors (permissions, disk full, path issues)
            logger.error("accounts_save_failed", path=str(self.path), error=str(e))
            return False

    async def load_accounts(self) -> list[Account]:
        """Load accounts from the file, skipping malformed entries.

        Raises:
            orjson.JSONDecodeError: If file is invalid JSON
            ValueError: If file structure is invalid
        """
        data = self._read()
        accounts: list[Account] = []
        for identifier, record in data["accounts"].items():
            try:
                accounts.append(Account.from_dict(identifier, record))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("invalid_account_skipped", account=identifier, error=str(e))

        logger.info("accounts_loaded", path=str(self.path), count=len(accounts))
        return accounts

    async def save_account(self, identifier: str, account: Account) -> bool:
        """Insert or update a single account record."""
        try:
            data = self._read()
        except (OSError, orjson.JSONDecodeError, ValueError) as e:
            logger.error("accounts_read_failed", path=str(self.path), error=str(e))
            return False
        data["accounts"][identifier] = account.to_dict()
        return self._write(data)

    async def save_all_accounts(self, accounts: Iterable[Account]) -> bool:
        """Replace the stored set with exactly ``accounts``."""
        data = {
            "version": ACCOUNTS_FILE_VERSION,
            "accounts": {account.identifier: account.to_dict() for account in accounts},
        }
        return self._write(data)
