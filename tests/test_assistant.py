"""
Tests for assistant.py: the search flow.

The AI client is replaced by AsyncMocks on providers.manager.

Covers:
  - begin_search(): clears stale result and error, sets busy flag
  - run_image_search(): one history entry per successful or degraded search
  - run_text_search(): never touches history, drops the pending image
  - transport failure: error message kept, busy flag cleared, history unchanged
  - unauthenticated searches raise NotAuthenticated
  - "show more" paging
"""
from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio

import assistant
import config
from account_store import AccountStore, MemoryKeyValueStore, NotAuthenticated
from assistant import UserSession, run_image_search, run_text_search
from models import ImagePayload, ResultItem, SearchResult
from providers import manager
from providers.base import ProviderResult, ResponseStatus, ShoppingSearchError

IMAGE = ImagePayload(base64_payload="/9j/AAAA", mime_type="image/jpeg")


def make_run(n_items: int = 2, status: ResponseStatus = ResponseStatus.OK,
             product: str = "Blue ceramic mug") -> ProviderResult:
    items = tuple(
        ResultItem(title=f"Mug {i}", link=f"https://shop{i}.example/mug") for i in range(n_items)
    )
    return ProviderResult(
        provider_name="fake/model",
        status=status,
        result=SearchResult(identified_product=product, search_results=items),
        latency_ms=5,
        input_tokens=1,
        output_tokens=1,
        cost_usd=0.0,
    )


@pytest.fixture
def accounts() -> AccountStore:
    return AccountStore(MemoryKeyValueStore())


@pytest_asyncio.fixture
async def signed_in(accounts) -> AccountStore:
    await accounts.create_account("ann@example.com", "pw")
    await accounts.update_location("ann@example.com", "Berlin")
    return accounts


async def history_len(accounts: AccountStore) -> int:
    return len((await accounts.load_session()).history)


# ── UserSession ───────────────────────────────────────────────────────────────

class TestUserSession:
    def test_begin_search_clears_previous_state(self):
        session = UserSession(result=make_run().result, error="old error", visible_count=18)
        session.begin_search()
        assert session.is_loading
        assert session.result is None
        assert session.error is None
        assert session.visible_count == config.RESULTS_PER_PAGE

    def test_fail_clears_result(self):
        session = UserSession(result=make_run().result)
        session.fail("boom")
        assert session.result is None
        assert session.error == "boom"
        assert not session.is_loading

    def test_show_more_pages_by_results_per_page(self, monkeypatch):
        monkeypatch.setattr(config, "RESULTS_PER_PAGE", 6)
        session = UserSession(visible_count=6)
        session.finish(make_run(n_items=14))
        assert len(session.visible_items()) == 6
        assert session.has_more
        session.show_more()
        assert len(session.visible_items()) == 12
        session.show_more()
        assert len(session.visible_items()) == 14
        assert not session.has_more

    def test_reset(self):
        session = UserSession(image=IMAGE, error="x")
        session.reset()
        assert session.image is None and session.error is None

    def test_get_session_is_per_chat(self):
        assert assistant.get_session(1) is assistant.get_session(1)
        assert assistant.get_session(1) is not assistant.get_session(2)


# ── run_image_search() ────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestImageSearch:
    async def test_success_adds_one_history_entry_first(self, signed_in):
        await signed_in.create_account("bob@example.com", "pw")   # unrelated account
        await signed_in.authenticate("ann@example.com", "pw")
        session = UserSession(image=IMAGE)
        before = await history_len(signed_in)

        with patch.object(manager, "identify_and_search", AsyncMock(return_value=make_run())) as call:
            result = await run_image_search(session, signed_in)

        call.assert_awaited_once_with(IMAGE, "Berlin")
        assert result.identified_product == "Blue ceramic mug"
        assert session.result is result
        assert not session.is_loading
        account = await signed_in.load_session()
        assert len(account.history) == before + 1
        assert account.history[0].result == result
        assert account.history[0].preview_src == IMAGE.data_url

    async def test_degraded_result_still_recorded(self, signed_in):
        session = UserSession(image=IMAGE)
        degraded = make_run(n_items=0, status=ResponseStatus.INVALID_JSON,
                            product="An error occurred while processing the AI response.")
        with patch.object(manager, "identify_and_search", AsyncMock(return_value=degraded)):
            result = await run_image_search(session, signed_in)

        assert result.search_results == ()
        assert session.error is None
        assert await history_len(signed_in) == 1

    async def test_transport_error_sets_error_and_clears_busy(self, signed_in):
        session = UserSession(image=IMAGE, result=make_run().result)
        error = ShoppingSearchError("Failed to identify and search: network down")
        with patch.object(manager, "identify_and_search", AsyncMock(side_effect=error)):
            result = await run_image_search(session, signed_in)

        assert result is None
        assert session.error == "Failed to identify and search: network down"
        assert session.result is None
        assert not session.is_loading
        assert session.image is IMAGE      # retry possible
        assert await history_len(signed_in) == 0

    async def test_requires_image(self, signed_in):
        with pytest.raises(ValueError):
            await run_image_search(UserSession(), signed_in)

    async def test_signed_out_raises(self, accounts):
        with patch.object(manager, "identify_and_search", AsyncMock()) as call:
            with pytest.raises(NotAuthenticated):
                await run_image_search(UserSession(image=IMAGE), accounts)
        call.assert_not_awaited()


# ── run_text_search() ─────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestTextSearch:
    async def test_never_records_history(self, signed_in):
        session = UserSession(image=IMAGE)
        with patch.object(manager, "search_with_text", AsyncMock(return_value=make_run())) as call:
            result = await run_text_search(session, signed_in, "  red running shoes ")

        call.assert_awaited_once_with("red running shoes", "Berlin")
        assert result is not None
        assert session.image is None
        assert await history_len(signed_in) == 0

    async def test_transport_error(self, signed_in):
        session = UserSession()
        error = ShoppingSearchError("Failed to search with text: 503")
        with patch.object(manager, "search_with_text", AsyncMock(side_effect=error)):
            assert await run_text_search(session, signed_in, "mug") is None
        assert session.error.startswith("Failed to search with text")
        assert not session.is_loading

    async def test_blank_query_rejected(self, signed_in):
        with patch.object(manager, "search_with_text", AsyncMock()) as call:
            with pytest.raises(ValueError):
                await run_text_search(UserSession(), signed_in, "   ")
        call.assert_not_awaited()

    async def test_signed_out_raises(self, accounts):
        with pytest.raises(NotAuthenticated):
            await run_text_search(UserSession(), accounts, "mug")
