"""
account_store.py — local accounts, profile data and the session pointer.

Storage layout (through a KeyValueStore port):
  users                    → JSON object {email: account record}
  <session_key>            → email of the signed-in account for this client

This is a local-only trust model: passwords are compared as plain strings
and nothing is hashed or encrypted.

Corrupted stored JSON is treated as "no data" and logged, never raised.
"""
from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

from models import Account

logger = logging.getLogger(__name__)

USERS_KEY = "users"
DEFAULT_SESSION_KEY = "current_user_email"

# Several chats share the `users` map; serialise read-modify-write cycles.
_users_lock = asyncio.Lock()


# ── Errors ────────────────────────────────────────────────────────────────────

class AccountError(Exception):
    """Base class for user-input errors raised by the account store."""


class DuplicateAccount(AccountError):
    def __init__(self, email: str):
        super().__init__("An account with this email already exists.")
        self.email = email


class InvalidCredentials(AccountError):
    def __init__(self):
        super().__init__("Invalid email or password.")


class MissingCredentials(AccountError):
    def __init__(self):
        super().__init__("Email and password are required.")


class AccountNotFound(AccountError):
    def __init__(self, email: str):
        super().__init__(f"No active session for {email}.")
        self.email = email


class NotAuthenticated(AccountError):
    def __init__(self):
        super().__init__("Please log in to start searching.")


# ── Persistence port ──────────────────────────────────────────────────────────

class KeyValueStore(ABC):
    """String key → string value storage."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...


class SQLiteKeyValueStore(KeyValueStore):
    """Backed by the kv_store table in database.py."""

    async def get(self, key: str) -> Optional[str]:
        import database as db
        return await db.get_value(key)

    async def set(self, key: str, value: str) -> None:
        import database as db
        await db.set_value(key, value)

    async def delete(self, key: str) -> None:
        import database as db
        await db.delete_value(key)


class MemoryKeyValueStore(KeyValueStore):
    """In-process store, used by tests and throwaway sessions."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self.data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.data[key] = value

    async def delete(self, key: str) -> None:
        self.data.pop(key, None)


# ── Account store ─────────────────────────────────────────────────────────────

class AccountStore:
    """
    Accounts keyed by email (case-sensitive, as typed) plus one session
    pointer. Each client instance gets its own `session_key`; the `users`
    map is shared.
    """

    def __init__(self, kv: KeyValueStore, session_key: str = DEFAULT_SESSION_KEY):
        self._kv = kv
        self.session_key = session_key

    # -- raw map access --------------------------------------------------------

    async def _load_users(self) -> dict[str, dict]:
        raw = await self._kv.get(USERS_KEY)
        if not raw:
            return {}
        try:
            users = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning("account_store: stored users are not valid JSON (%s); treating as empty", exc)
            return {}
        if not isinstance(users, dict):
            logger.warning("account_store: stored users is a %s, not an object; treating as empty",
                           type(users).__name__)
            return {}
        return users

    async def _save_users(self, users: dict[str, dict]) -> None:
        await self._kv.set(USERS_KEY, json.dumps(users))

    @staticmethod
    def _decode(email: str, record) -> Optional[Account]:
        if not isinstance(record, dict):
            return None
        try:
            return Account.from_record(email, record)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("account_store: record for %s is malformed (%s); ignoring it", email, exc)
            return None

    # -- session pointer -------------------------------------------------------

    async def current_email(self) -> Optional[str]:
        return await self._kv.get(self.session_key) or None

    async def _activate(self, email: str) -> None:
        await self._kv.set(self.session_key, email)

    async def end_session(self) -> None:
        """Sign out. The account itself is kept."""
        await self._kv.delete(self.session_key)

    async def load_session(self) -> Optional[Account]:
        """Resolve the session pointer to its account; None means signed out."""
        email = await self.current_email()
        if not email:
            return None
        users = await self._load_users()
        return self._decode(email, users.get(email))

    # -- operations ------------------------------------------------------------

    async def create_account(self, email: str, password: str) -> Account:
        if not email or not password:
            raise MissingCredentials()
        async with _users_lock:
            users = await self._load_users()
            if email in users:
                raise DuplicateAccount(email)
            account = Account(email=email, password=password)
            users[email] = account.to_record()
            await self._save_users(users)
        await self._activate(email)
        logger.info("Created account %s", email)
        return account

    async def authenticate(self, email: str, password: str) -> Account:
        if not email or not password:
            raise MissingCredentials()
        users = await self._load_users()
        account = self._decode(email, users.get(email))
        if account is None or account.password != password:
            raise InvalidCredentials()
        await self._activate(email)
        return account

    async def update_account(self, email: str, mutator: Callable[[Account], None]) -> Account:
        """
        Apply `mutator` to the stored account in place and persist the full
        record. Only the account of the active session may be updated.
        """
        if await self.current_email() != email:
            raise AccountNotFound(email)
        async with _users_lock:
            users = await self._load_users()
            account = self._decode(email, users.get(email))
            if account is None:
                raise AccountNotFound(email)
            mutator(account)
            users[email] = account.to_record()
            await self._save_users(users)
        return account

    async def update_profile_picture(self, email: str, data_url: str) -> Account:
        def _set(account: Account) -> None:
            account.profile_pic = data_url
        return await self.update_account(email, _set)

    async def update_location(self, email: str, location: str) -> Account:
        def _set(account: Account) -> None:
            account.location = location
        return await self.update_account(email, _set)
