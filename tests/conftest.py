"""
Shared pytest fixtures.

Every test gets a clean temporary DATA_DIR via the autouse `tmp_data_dir`
fixture so tests are fully isolated from each other and from the real
snap_shop.db. In-memory per-chat sessions and the cached AI provider are
reset as well.
"""
from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest

# ── Make the project root importable without installing the package ────────────
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


@pytest.fixture(autouse=True)
def tmp_data_dir(tmp_path, monkeypatch):
    """
    Redirect DATA_DIR to a fresh tmp directory for every test.
    This gives each test a clean SQLite file and prevents cross-test pollution.
    """
    data = tmp_path / "data"
    data.mkdir()
    monkeypatch.setenv("DATA_DIR", str(data))

    # Patch the module-level DB_PATH that was already computed at import time
    import database
    monkeypatch.setattr(database, "DB_PATH", str(data / "snap_shop.db"))
    monkeypatch.setattr(database, "_DATA_DIR", data)

    # Fresh locks so tests don't share state across event loops
    monkeypatch.setattr(database, "_lock", asyncio.Lock())
    import account_store
    monkeypatch.setattr(account_store, "_users_lock", asyncio.Lock())

    yield data


@pytest.fixture(autouse=True)
def reset_in_memory_state():
    import assistant
    import providers.manager as manager_mod
    assistant._sessions.clear()
    manager_mod._provider = None
    yield
    assistant._sessions.clear()
    manager_mod._provider = None
