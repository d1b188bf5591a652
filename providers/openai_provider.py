"""
OpenAI shopping provider — chat completions with a json_schema response format.

Pricing (per 1M tokens, as of 2025):
  gpt-4o:       $2.50 input,  $10.00 output
  gpt-4o-mini:  $0.15 input,  $0.60  output
"""
from __future__ import annotations

import logging
from typing import Optional

from openai import AsyncOpenAI

from models import ImagePayload
from providers.base import SHOPPING_RESPONSE_SCHEMA, Completion, ShoppingProvider

logger = logging.getLogger(__name__)


class OpenAIProvider(ShoppingProvider):

    def __init__(self, api_key: str, model: str = "gpt-4o-mini", max_listings: int = 20):
        self.name = "openai"
        self.model_id = model
        self.max_listings = max_listings
        self._client = AsyncOpenAI(api_key=api_key)

        # Pricing per 1k tokens
        _pricing = {
            "gpt-4o":      (0.0025,  0.01),
            "gpt-4o-mini": (0.00015, 0.0006),
        }
        self.cost_per_1k_input_tokens, self.cost_per_1k_output_tokens = _pricing.get(
            model, (0.0025, 0.01)
        )

    async def _generate(self, prompt: str, image: Optional[ImagePayload]) -> Completion:
        content: list[dict] = []
        if image is not None:
            content.append({
                "type": "image_url",
                "image_url": {"url": image.data_url, "detail": "high"},
            })
        content.append({"type": "text", "text": prompt})

        response = await self._client.chat.completions.create(
            model=self.model_id,
            messages=[{"role": "user", "content": content}],
            response_format={
                "type": "json_schema",
                "json_schema": {"name": "shopping_results", "schema": SHOPPING_RESPONSE_SCHEMA},
            },
        )

        usage = response.usage
        return Completion(
            text          = response.choices[0].message.content,
            input_tokens  = usage.prompt_tokens if usage else 0,
            output_tokens = usage.completion_tokens if usage else 0,
        )
