"""
Anthropic shopping provider — messages API.

Claude has no response-schema switch, so the schema is spelled out in the
system prompt and the reply goes through the same fail-soft parser as the
other providers (markdown fences are stripped there).

Pricing (per 1M tokens, as of 2025):
  claude-3-5-haiku-latest:  $0.80 input,  $4.00  output
  claude-3-5-sonnet-latest: $3.00 input,  $15.00 output
"""
from __future__ import annotations

import json
import logging
from typing import Optional

import anthropic

from models import ImagePayload
from providers.base import SHOPPING_RESPONSE_SCHEMA, Completion, ShoppingProvider

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "Return ONLY a valid JSON object — no markdown, no prose — matching this JSON schema:\n"
    + json.dumps(SHOPPING_RESPONSE_SCHEMA, indent=2)
)


class AnthropicProvider(ShoppingProvider):

    def __init__(self, api_key: str, model: str = "claude-3-5-haiku-latest", max_listings: int = 20):
        self.name = "anthropic"
        self.model_id = model
        self.max_listings = max_listings
        self._client = anthropic.AsyncAnthropic(api_key=api_key)

        _pricing = {
            "claude-3-5-haiku-latest":  (0.0008, 0.004),
            "claude-3-5-sonnet-latest": (0.003,  0.015),
        }
        self.cost_per_1k_input_tokens, self.cost_per_1k_output_tokens = _pricing.get(
            model, (0.003, 0.015)
        )

    async def _generate(self, prompt: str, image: Optional[ImagePayload]) -> Completion:
        content: list[dict] = []
        if image is not None:
            content.append({
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": image.mime_type,
                    "data": image.base64_payload,
                },
            })
        content.append({"type": "text", "text": prompt})

        message = await self._client.messages.create(
            model=self.model_id,
            max_tokens=4096,
            system=SYSTEM_PROMPT,
            messages=[{"role": "user", "content": content}],
        )

        text = "".join(block.text for block in message.content if block.type == "text")
        return Completion(
            text          = text,
            input_tokens  = message.usage.input_tokens,
            output_tokens = message.usage.output_tokens,
        )
