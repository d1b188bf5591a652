"""
assistant.py — the search flow behind the chat screens.

A UserSession holds what one chat currently shows: the pending image, the
last result or error, the busy flag and how many listings are visible.
Starting a search clears the previous result and error immediately; the
busy flag is cleared again on completion or failure.

Transport failures from the AI client stop here: they replace the stale
result with an error message and the caller renders it. Only image
searches are written to history.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import config
import history
from account_store import AccountStore, NotAuthenticated
from models import Account, ImagePayload, ResultItem, SearchResult
from providers import manager
from providers.base import ProviderResult, ShoppingSearchError

logger = logging.getLogger(__name__)


@dataclass
class UserSession:
    image: Optional[ImagePayload] = None
    result: Optional[SearchResult] = None
    last_run: Optional[ProviderResult] = None
    error: Optional[str] = None
    is_loading: bool = False
    visible_count: int = config.RESULTS_PER_PAGE

    def begin_search(self) -> None:
        self.is_loading = True
        self.result = None
        self.last_run = None
        self.error = None
        self.visible_count = config.RESULTS_PER_PAGE

    def finish(self, run: ProviderResult) -> None:
        self.is_loading = False
        self.last_run = run
        self.result = run.result

    def fail(self, message: str) -> None:
        self.is_loading = False
        self.result = None
        self.error = message

    def visible_items(self) -> tuple[ResultItem, ...]:
        if self.result is None:
            return ()
        return self.result.search_results[: self.visible_count]

    @property
    def has_more(self) -> bool:
        return self.result is not None and len(self.result.search_results) > self.visible_count

    def show_more(self) -> None:
        self.visible_count += config.RESULTS_PER_PAGE

    def reset(self) -> None:
        """Back to the empty "new search" screen."""
        self.image = None
        self.result = None
        self.last_run = None
        self.error = None
        self.visible_count = config.RESULTS_PER_PAGE


_sessions: dict[int, UserSession] = {}


def get_session(chat_id: int) -> UserSession:
    if chat_id not in _sessions:
        _sessions[chat_id] = UserSession()
    return _sessions[chat_id]


async def _require_account(accounts: AccountStore) -> Account:
    account = await accounts.load_session()
    if account is None:
        raise NotAuthenticated()
    return account


async def run_image_search(session: UserSession, accounts: AccountStore) -> Optional[SearchResult]:
    """
    Search for the session's pending image. Returns the result, or None when
    the AI call failed (session.error then holds the message).
    """
    account = await _require_account(accounts)
    if session.image is None:
        raise ValueError("No image to search")

    image = session.image
    session.begin_search()
    try:
        run = await manager.identify_and_search(image, account.location)
    except ShoppingSearchError as exc:
        session.fail(str(exc))
        return None
    finally:
        session.is_loading = False

    session.finish(run)
    await history.record_image_search(accounts, account.email, image.data_url, run.result)
    return run.result


async def run_text_search(
    session: UserSession,
    accounts: AccountStore,
    query: str,
) -> Optional[SearchResult]:
    """Search by free text. Text searches are never written to history."""
    account = await _require_account(accounts)
    query = query.strip()
    if not query:
        raise ValueError("Empty search query")

    session.begin_search()
    session.image = None
    try:
        run = await manager.search_with_text(query, account.location)
    except ShoppingSearchError as exc:
        session.fail(str(exc))
        return None
    finally:
        session.is_loading = False

    session.finish(run)
    return run.result
