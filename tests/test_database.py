"""
Tests for database.py.

Covers:
  - DB path defaults to data/ subdirectory
  - Schema creation (init_db is idempotent)
  - Key/value CRUD: set, get, overwrite, delete
"""
from __future__ import annotations

from pathlib import Path

import pytest
import pytest_asyncio

import database as db


@pytest_asyncio.fixture(autouse=True)
async def init(tmp_data_dir):
    """Initialise the DB schema before every test."""
    await db.init_db()


# ── DB path ────────────────────────────────────────────────────────────────────

class TestDbPath:
    def test_db_path_inside_data_dir(self, tmp_data_dir):
        assert Path(db.DB_PATH).parent == tmp_data_dir


# ── init_db ────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestInitDb:
    async def test_idempotent(self):
        """Calling init_db twice must not raise."""
        await db.init_db()
        await db.init_db()

    async def test_db_file_created(self, tmp_data_dir):
        assert Path(db.DB_PATH).exists()


# ── Key/value store ────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestKeyValue:
    async def test_missing_key_is_none(self):
        assert await db.get_value("users") is None

    async def test_set_then_get(self):
        await db.set_value("users", '{"a@b.c": {}}')
        assert await db.get_value("users") == '{"a@b.c": {}}'

    async def test_overwrite(self):
        await db.set_value("current_user_email:1", "old@example.com")
        await db.set_value("current_user_email:1", "new@example.com")
        assert await db.get_value("current_user_email:1") == "new@example.com"

    async def test_keys_are_independent(self):
        await db.set_value("current_user_email:1", "one@example.com")
        await db.set_value("current_user_email:2", "two@example.com")
        assert await db.get_value("current_user_email:1") == "one@example.com"
        assert await db.get_value("current_user_email:2") == "two@example.com"

    async def test_delete_existing(self):
        await db.set_value("k", "v")
        assert await db.delete_value("k") is True
        assert await db.get_value("k") is None

    async def test_delete_missing_returns_false(self):
        assert await db.delete_value("nope") is False
