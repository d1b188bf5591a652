"""
Shared prompts, response schema, parsing and base class for all shopping providers.

Every provider makes exactly one outbound call per search and hands the raw
reply text to parse_shopping_response(). Parsing is fail-soft: a reply that
is not JSON, or JSON of the wrong shape, becomes a degraded SearchResult
with no listings instead of an exception. Only transport failures raise
(ShoppingSearchError).
"""
from __future__ import annotations

import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from models import ImagePayload, ResultItem, SearchResult

logger = logging.getLogger(__name__)

# ── Prompts (shared across all providers) ─────────────────────────────────────

DETAILS_PROMPT = (
    " Provide details for each shopping result including a title, link, image URL,"
    " price, and the store name."
)


def _location_clause(location: Optional[str]) -> str:
    # Free text from the user's profile, passed through as typed.
    if location:
        return (
            f' Prioritize local physical stores near "{location}" if possible,'
            f" otherwise list online retailers."
        )
    return ""


def build_image_prompt(location: Optional[str] = None, max_listings: int = 20) -> str:
    return (
        "You are an expert shopping assistant. Look at this image and identify the main product."
        f" Then, find up to {max_listings} online stores where this product can be purchased."
        + _location_clause(location)
        + DETAILS_PROMPT
    )


def build_text_prompt(query: str, location: Optional[str] = None, max_listings: int = 20) -> str:
    return (
        f'You are an expert shopping assistant. The user is looking for "{query}".'
        f" Identify the product and find up to {max_listings} online stores where it can be purchased."
        + _location_clause(location)
        + DETAILS_PROMPT
    )


# ── Structured-output schema ──────────────────────────────────────────────────

SHOPPING_RESPONSE_SCHEMA: dict = {
    "type": "object",
    "properties": {
        "identifiedProduct": {
            "type": "string",
            "description": "A description of the identified item.",
        },
        "searchResults": {
            "type": "array",
            "description": "A list of online stores where the product can be purchased.",
            "items": {
                "type": "object",
                "properties": {
                    "title":     {"type": "string", "description": "The title of the product listing."},
                    "link":      {"type": "string", "description": "A valid URL to the product page."},
                    "imageUrl":  {"type": "string", "description": "URL of an image for the product listing."},
                    "price":     {"type": "string", "description": "The price of the product, including currency."},
                    "storeName": {"type": "string", "description": "The name of the online store."},
                },
                "required": ["title", "link"],
            },
        },
    },
    "required": ["identifiedProduct", "searchResults"],
}


# ── Response validation ───────────────────────────────────────────────────────

UNTITLED = "Untitled"
NO_LINK = "#"

PROCESSING_ERROR_MESSAGE = "An error occurred while processing the AI response."
UNEXPECTED_FORMAT_MESSAGE = "The AI response was not in the expected format."


class ResponseStatus(str, Enum):
    OK = "ok"
    INVALID_JSON = "invalid_json"
    UNEXPECTED_FORMAT = "unexpected_format"


@dataclass(frozen=True)
class ParsedResponse:
    status: ResponseStatus
    result: SearchResult

    @property
    def degraded(self) -> bool:
        return self.status is not ResponseStatus.OK


def _to_item(raw: Any) -> ResultItem:
    if not isinstance(raw, dict):
        return ResultItem(title=UNTITLED, link=NO_LINK)
    title = raw.get("title")
    link = raw.get("link")
    return ResultItem(
        title=str(title) if title else UNTITLED,
        link=str(link) if link else NO_LINK,
        image_url=raw.get("imageUrl"),
        price=raw.get("price"),
        store_name=raw.get("storeName"),
    )


def validate_shopping_payload(data: Any) -> ParsedResponse:
    """Check the decoded JSON shape and normalise every listing."""
    if (
        not isinstance(data, dict)
        or not isinstance(data.get("identifiedProduct"), str)
        or not isinstance(data.get("searchResults"), list)
    ):
        return ParsedResponse(
            ResponseStatus.UNEXPECTED_FORMAT,
            SearchResult(identified_product=UNEXPECTED_FORMAT_MESSAGE),
        )
    items = tuple(
        item for item in map(_to_item, data["searchResults"]) if item.link != NO_LINK
    )
    return ParsedResponse(
        ResponseStatus.OK,
        SearchResult(identified_product=data["identifiedProduct"], search_results=items),
    )


def parse_shopping_response(raw: Optional[str], provider_name: str) -> ParsedResponse:
    """
    Parse a model reply, handling markdown fences gracefully.
    Never raises: bad input yields a degraded result with no listings.
    """
    text = (raw or "").strip()
    # Strip ```json ... ``` or ``` ... ``` fences if present
    if text.startswith("```"):
        lines = text.split("\n")
        text = "\n".join(lines[1:-1] if lines[-1].strip() == "```" else lines[1:])
    try:
        data = json.loads(text)
    except (ValueError, RecursionError) as exc:
        # JSONDecodeError, oversized integers and runaway nesting
        logger.error("[%s] Non-JSON response (%s): %s", provider_name, exc, (raw or "")[:300])
        return ParsedResponse(
            ResponseStatus.INVALID_JSON,
            SearchResult(identified_product=PROCESSING_ERROR_MESSAGE),
        )

    parsed = validate_shopping_payload(data)
    if parsed.degraded:
        logger.warning("[%s] JSON does not match the expected structure: %s",
                       provider_name, text[:300])
    return parsed


# ── Shared result type ────────────────────────────────────────────────────────

class ShoppingSearchError(RuntimeError):
    """The call to the AI service itself failed (network, HTTP status, SDK error)."""


IMAGE_SEARCH_FAILED = "Failed to identify and search"
TEXT_SEARCH_FAILED = "Failed to search with text"


@dataclass
class Completion:
    """Raw reply from one provider call."""
    text: Optional[str]
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass
class ProviderResult:
    """Outcome of a single search call."""
    provider_name: str          # e.g. "google/gemini-2.5-flash"
    status: ResponseStatus
    result: SearchResult
    latency_ms: int
    input_tokens: int
    output_tokens: int
    cost_usd: float

    @property
    def degraded(self) -> bool:
        return self.status is not ResponseStatus.OK

    @property
    def cost_str(self) -> str:
        if self.cost_usd < 0.001:
            return f"${self.cost_usd * 1000:.3f}m"   # show in milli-dollars
        return f"${self.cost_usd:.4f}"


# ── Abstract base ─────────────────────────────────────────────────────────────

class ShoppingProvider(ABC):
    """Base class all shopping providers must implement."""

    name: str           # e.g. "google"
    model_id: str       # e.g. "gemini-2.5-flash"
    cost_per_1k_input_tokens: float = 0.0
    cost_per_1k_output_tokens: float = 0.0
    max_listings: int = 20

    @abstractmethod
    async def _generate(self, prompt: str, image: Optional[ImagePayload]) -> Completion:
        """Send one request constrained to SHOPPING_RESPONSE_SCHEMA and return the raw reply."""
        ...

    @property
    def full_name(self) -> str:
        return f"{self.name}/{self.model_id}"

    def estimate_cost(self, input_tokens: int, output_tokens: int) -> float:
        return (
            input_tokens / 1000 * self.cost_per_1k_input_tokens
            + output_tokens / 1000 * self.cost_per_1k_output_tokens
        )

    async def identify_and_search(
        self,
        image: ImagePayload,
        location: Optional[str] = None,
    ) -> ProviderResult:
        prompt = build_image_prompt(location, self.max_listings)
        return await self._run(prompt, image, IMAGE_SEARCH_FAILED)

    async def search_with_text(
        self,
        query: str,
        location: Optional[str] = None,
    ) -> ProviderResult:
        prompt = build_text_prompt(query, location, self.max_listings)
        return await self._run(prompt, None, TEXT_SEARCH_FAILED)

    async def _run(self, prompt: str, image: Optional[ImagePayload], failure: str) -> ProviderResult:
        t0 = time.monotonic()
        try:
            completion = await self._generate(prompt, image)
        except Exception as exc:
            logger.error("[%s] %s: %s", self.full_name, failure, exc)
            raise ShoppingSearchError(f"{failure}: {str(exc) or type(exc).__name__}") from exc
        latency_ms = int((time.monotonic() - t0) * 1000)

        parsed = parse_shopping_response(completion.text, self.full_name)
        return ProviderResult(
            provider_name = self.full_name,
            status        = parsed.status,
            result        = parsed.result,
            latency_ms    = latency_ms,
            input_tokens  = completion.input_tokens,
            output_tokens = completion.output_tokens,
            cost_usd      = self.estimate_cost(completion.input_tokens, completion.output_tokens),
        )
