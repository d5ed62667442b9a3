"""Tests for JSON account persistence."""

import json
from pathlib import Path

import orjson
import pytest
from helpers import make_account, write_accounts_file

from account_relay.accounts.persistence import JsonAccountPersistence


@pytest.mark.unit
@pytest.mark.asyncio
async def test_load_missing_file_returns_empty(tmp_path: Path) -> None:
    persistence = JsonAccountPersistence(tmp_path / "missing.json")

    assert await persistence.load_accounts() == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_save_account_then_load(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "accounts.json"
    persistence = JsonAccountPersistence(path)
    first = make_account("a@example.com")
    second = make_account("b@example.com", token=None, expires_in_ms=None)

    assert await persistence.save_account(first.identifier, first)
    assert await persistence.save_account(second.identifier, second)

    loaded = await persistence.load_accounts()
    assert loaded == [first, second]

    data = json.loads(path.read_text())
    assert data["version"] == 1
    assert data["accounts"]["a@example.com"]["sessionToken"] == first.session_token
    assert not path.with_suffix(".json.tmp").exists()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_save_account_updates_in_place(tmp_path: Path) -> None:
    path = tmp_path / "accounts.json"
    persistence = JsonAccountPersistence(path)
    original = make_account("a@example.com", token="old")
    await persistence.save_account(original.identifier, original)

    updated = make_account("a@example.com", token="new")
    await persistence.save_account(updated.identifier, updated)

    loaded = await persistence.load_accounts()
    assert len(loaded) == 1
    assert loaded[0].session_token == "new-a@example.com"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_save_all_accounts_replaces_file_contents(tmp_path: Path) -> None:
    path = tmp_path / "accounts.json"
    write_accounts_file(
        path, [make_account("a@example.com"), make_account("b@example.com")]
    )
    persistence = JsonAccountPersistence(path)

    await persistence.save_all_accounts([make_account("b@example.com")])

    loaded = await persistence.load_accounts()
    assert [a.identifier for a in loaded] == ["b@example.com"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_malformed_entries_are_skipped(tmp_path: Path) -> None:
    path = tmp_path / "accounts.json"
    path.write_text(
        json.dumps(
            {
                "version": 1,
                "accounts": {
                    "good@example.com": {"secret": "pw", "sessionToken": "t"},
                    "bad@example.com": {"sessionToken": "no-secret"},
                },
            }
        )
    )

    loaded = await JsonAccountPersistence(path).load_accounts()

    assert [a.identifier for a in loaded] == ["good@example.com"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_invalid_json_raises(tmp_path: Path) -> None:
    path = tmp_path / "accounts.json"
    path.write_text("{not json")

    with pytest.raises(orjson.JSONDecodeError):
        await JsonAccountPersistence(path).load_accounts()
