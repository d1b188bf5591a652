"""
history.py — records image searches on the signed-in account.

Only image searches are recorded; a text search has no preview to anchor
the entry to. Entries are prepended, so history is always newest first.
"""
from __future__ import annotations

import logging
import time
import uuid
from typing import Optional

from account_store import AccountStore
from models import Account, HistoryEntry, SearchResult

logger = logging.getLogger(__name__)


def new_entry(preview_src: str, result: SearchResult) -> HistoryEntry:
    return HistoryEntry(
        id=uuid.uuid4().hex,
        timestamp=int(time.time() * 1000),
        preview_src=preview_src,
        result=result,
    )


async def record_image_search(
    accounts: AccountStore,
    email: str,
    preview_src: str,
    result: SearchResult,
) -> HistoryEntry:
    entry = new_entry(preview_src, result)

    def _prepend(account: Account) -> None:
        account.history.insert(0, entry)

    account = await accounts.update_account(email, _prepend)
    logger.info("History entry %s saved for %s (%d total)", entry.id, email, len(account.history))
    return entry


def find_entry(account: Account, entry_id: str) -> Optional[HistoryEntry]:
    return next((e for e in account.history if e.id == entry_id), None)
