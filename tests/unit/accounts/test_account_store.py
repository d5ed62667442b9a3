"""Tests for the account record and the credential store."""

import asyncio

import pytest
from helpers import DAY_MS, make_account

from account_relay.accounts.models import Account, mask_token, now_ms
from account_relay.accounts.store import CredentialStore


@pytest.mark.unit
class TestAccount:
    def test_empty_identifier_rejected(self) -> None:
        with pytest.raises(ValueError):
            Account(identifier="  ", secret="pw")

    def test_with_session_returns_new_record(self) -> None:
        account = make_account("a@example.com", token=None, expires_in_ms=None)
        expires_at = now_ms() + DAY_MS

        updated = account.with_session("new-token", expires_at)

        assert updated is not account
        assert updated.session_token == "new-token"
        assert updated.session_expires_at == expires_at
        assert account.session_token is None

    def test_public_dict_hides_secret_and_masks_token(self) -> None:
        account = make_account("a@example.com", token="abcdefghijkl", secret="hunter2")

        public = account.public_dict()

        assert public["email"] == "a@example.com"
        assert public["hasSession"] is True
        assert public["sessionToken"].startswith("****")
        assert "abcdefghijkl" not in public["sessionToken"]
        assert "hunter2" not in str(public)
        assert public["sessionExpiresIn"] > 0

    def test_dict_round_trip_through_persisted_form(self) -> None:
        account = make_account("a@example.com")

        restored = Account.from_dict(account.identifier, account.to_dict())

        assert restored == account

    def test_mask_token(self) -> None:
        assert mask_token(None) is None
        assert mask_token("short") == "****"
        assert mask_token("0123456789abcdef") == "****cdef"


@pytest.mark.unit
@pytest.mark.asyncio
class TestCredentialStore:
    async def test_add_rejects_duplicate_identifier(self) -> None:
        store = CredentialStore()
        original = make_account("a@example.com", token="first")

        assert await store.add(original) is True
        assert await store.add(make_account("a@example.com", token="second")) is False

        assert len(store) == 1
        assert store.get("a@example.com") == original

    async def test_identifiers_stay_unique_under_concurrent_adds(self) -> None:
        store = CredentialStore()
        candidates = [make_account(f"user{i % 5}@example.com") for i in range(50)]

        results = await asyncio.gather(*(store.add(a) for a in candidates))

        assert sum(results) == 5
        identifiers = [a.identifier for a in store.snapshot()]
        assert len(identifiers) == len(set(identifiers)) == 5

    async def test_remove_returns_removed_record(self) -> None:
        store = CredentialStore([make_account("a@example.com")])

        removed = await store.remove("a@example.com")

        assert removed is not None
        assert "a@example.com" not in store
        assert await store.remove("a@example.com") is None

    async def test_replace_only_updates_existing_records(self) -> None:
        store = CredentialStore([make_account("a@example.com", token="old")])
        refreshed = make_account("a@example.com", token="new")

        assert await store.replace(refreshed) is True
        assert store.get("a@example.com").session_token == "new-a@example.com"

        assert await store.replace(make_account("gone@example.com")) is False
        assert "gone@example.com" not in store

    async def test_snapshot_preserves_insertion_order(self) -> None:
        store = CredentialStore()
        for name in ("c", "a", "b"):
            await store.add(make_account(f"{name}@example.com"))

        assert [a.identifier for a in store.snapshot()] == [
            "c@example.com",
            "a@example.com",
            "b@example.com",
        ]

    async def test_snapshot_is_a_copy(self) -> None:
        store = CredentialStore([make_account("a@example.com")])
        snapshot = store.snapshot()

        await store.add(make_account("b@example.com"))

        assert len(snapshot) == 1
        assert len(store) == 2
