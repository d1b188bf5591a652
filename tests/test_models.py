"""
Tests for models.py: stored record shapes.
"""
from __future__ import annotations

import pytest

from models import Account, HistoryEntry, ImagePayload, ResultItem, SearchResult


class TestImagePayload:
    def test_data_url_round_trip(self):
        payload = ImagePayload(base64_payload="AAAA", mime_type="image/webp")
        assert payload.data_url == "data:image/webp;base64,AAAA"
        assert ImagePayload.from_data_url(payload.data_url) == payload

    @pytest.mark.parametrize("bad", ["", "AAAA", "data:image/png,AAAA", "http://x/y.png"])
    def test_malformed_data_url(self, bad):
        with pytest.raises(ValueError):
            ImagePayload.from_data_url(bad)


class TestAccountRecord:
    def test_record_uses_camel_case_keys(self):
        entry = HistoryEntry(
            id="e1",
            timestamp=1_700_000_000_000,
            preview_src="data:image/png;base64,AAAA",
            result=SearchResult(
                identified_product="Mug",
                search_results=(ResultItem(title="Mug", link="https://a.example", store_name="A"),),
            ),
        )
        account = Account(email="ann@example.com", password="pw", location="Rome", history=[entry])
        record = account.to_record()

        assert record["location"] == "Rome"
        assert record["history"][0]["previewSrc"] == entry.preview_src
        assert record["history"][0]["result"]["searchResults"][0] == {
            "title": "Mug", "link": "https://a.example", "storeName": "A",
        }
        assert Account.from_record("ann@example.com", record) == account

    def test_location_omitted_when_unset(self):
        assert "location" not in Account(email="a", password="b").to_record()

    def test_missing_password_is_malformed(self):
        with pytest.raises(KeyError):
            Account.from_record("a", {"profilePic": ""})
