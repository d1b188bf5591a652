"""
Google Gemini shopping provider — uses the google-genai SDK.

The request carries the prompt (plus the inline image in image mode) and
asks for JSON constrained by SHOPPING_RESPONSE_SCHEMA via response_schema.

Pricing (per 1M tokens, as of 2025):
  gemini-2.5-flash:      $0.30 input,  $2.50 output
  gemini-2.0-flash:      $0.10 input,  $0.40 output
  gemini-2.0-flash-lite: $0.075 input, $0.30 output
"""
from __future__ import annotations

import logging
from typing import Optional

from google import genai
from google.genai import types as genai_types

from models import ImagePayload
from providers.base import SHOPPING_RESPONSE_SCHEMA, Completion, ShoppingProvider

logger = logging.getLogger(__name__)

_PRICING: dict[str, tuple[float, float]] = {
    # model_id: ($/1k_input_tokens, $/1k_output_tokens)
    "gemini-2.5-flash":      (0.0003,   0.0025),
    "gemini-2.0-flash":      (0.0001,   0.0004),
    "gemini-2.0-flash-lite": (0.000075, 0.0003),
}


def to_genai_schema(schema: dict) -> genai_types.Schema:
    """Convert a JSON-schema style dict into the SDK's Schema type."""
    return genai_types.Schema(
        type=schema["type"].upper(),
        description=schema.get("description"),
        properties=(
            {name: to_genai_schema(sub) for name, sub in schema["properties"].items()}
            if "properties" in schema else None
        ),
        items=to_genai_schema(schema["items"]) if "items" in schema else None,
        required=schema.get("required"),
    )


class GeminiProvider(ShoppingProvider):

    def __init__(self, api_key: str, model: str = "gemini-2.5-flash", max_listings: int = 20):
        self.name         = "google"
        self.model_id     = model
        self.max_listings = max_listings
        self._client      = genai.Client(api_key=api_key)
        self._schema      = to_genai_schema(SHOPPING_RESPONSE_SCHEMA)

        rates = _PRICING.get(model, _PRICING["gemini-2.5-flash"])
        self.cost_per_1k_input_tokens  = rates[0]
        self.cost_per_1k_output_tokens = rates[1]

    async def _generate(self, prompt: str, image: Optional[ImagePayload]) -> Completion:
        contents: list = []
        if image is not None:
            contents.append(
                genai_types.Part.from_bytes(data=image.to_bytes(), mime_type=image.mime_type)
            )
        contents.append(prompt)

        response = await self._client.aio.models.generate_content(
            model=self.model_id,
            contents=contents,
            config=genai_types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=self._schema,
            ),
        )

        usage = response.usage_metadata
        return Completion(
            text          = response.text,
            input_tokens  = getattr(usage, "prompt_token_count", None) or 0,
            output_tokens = getattr(usage, "candidates_token_count", None) or 0,
        )
