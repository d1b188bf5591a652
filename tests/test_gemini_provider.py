"""
Tests for providers/gemini_provider.py.

genai.Client is patched; no network calls are made.
"""
from __future__ import annotations

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from google.genai import types as genai_types

from models import ImagePayload
from providers.base import SHOPPING_RESPONSE_SCHEMA, ShoppingSearchError
from providers.gemini_provider import GeminiProvider, to_genai_schema

IMAGE = ImagePayload(base64_payload="iVBORw0KGgo=", mime_type="image/png")


def make_provider(reply: str = "", error: Exception | None = None):
    response = SimpleNamespace(
        text=reply,
        usage_metadata=SimpleNamespace(prompt_token_count=1200, candidates_token_count=300),
    )
    client = MagicMock()
    client.aio.models.generate_content = AsyncMock(return_value=response, side_effect=error)
    with patch("providers.gemini_provider.genai.Client", return_value=client) as ctor:
        provider = GeminiProvider("key", "gemini-2.5-flash", max_listings=20)
    ctor.assert_called_once_with(api_key="key")
    return provider, client.aio.models.generate_content


class TestSchema:
    def test_types_upper_cased_and_nested(self):
        schema = to_genai_schema(SHOPPING_RESPONSE_SCHEMA)
        assert schema.required == ["identifiedProduct", "searchResults"]
        results = schema.properties["searchResults"]
        assert results.items.required == ["title", "link"]
        assert set(results.items.properties) == {"title", "link", "imageUrl", "price", "storeName"}
        assert schema.type == genai_types.Type.OBJECT


@pytest.mark.asyncio
class TestGeminiProvider:
    async def test_image_request_shape(self):
        reply = json.dumps({"identifiedProduct": "Lamp", "searchResults": []})
        provider, generate = make_provider(reply)

        result = await provider.identify_and_search(IMAGE, "Oslo")

        kwargs = generate.await_args.kwargs
        assert kwargs["model"] == "gemini-2.5-flash"
        assert len(kwargs["contents"]) == 2
        assert 'near "Oslo"' in kwargs["contents"][1]
        assert kwargs["config"].response_mime_type == "application/json"
        assert result.result.identified_product == "Lamp"
        assert result.input_tokens == 1200 and result.output_tokens == 300
        assert result.cost_usd > 0

    async def test_text_request_has_no_image_part(self):
        reply = json.dumps({"identifiedProduct": "Mug", "searchResults": []})
        provider, generate = make_provider(reply)

        await provider.search_with_text("mug")

        contents = generate.await_args.kwargs["contents"]
        assert len(contents) == 1
        assert '"mug"' in contents[0]

    async def test_sdk_error_wrapped(self):
        provider, _ = make_provider(error=RuntimeError("403 PERMISSION_DENIED"))
        with pytest.raises(ShoppingSearchError, match="^Failed to search with text: 403"):
            await provider.search_with_text("mug")
