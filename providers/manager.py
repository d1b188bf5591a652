"""
Provider Manager — builds the configured shopping provider and runs searches.

The provider is chosen by config.AI_PROVIDER (gemini / openai / anthropic)
and built lazily on first use, then cached. Reset `_provider = None` to
force a rebuild (tests do this).

Each search is one outbound call; nothing is retried or cached.
"""
from __future__ import annotations

import logging
from typing import Optional

import config
from models import ImagePayload
from providers.base import ProviderResult, ShoppingProvider

logger = logging.getLogger(__name__)

_provider: Optional[ShoppingProvider] = None

PROVIDER_NAMES = ("gemini", "openai", "anthropic")


def _build_provider() -> ShoppingProvider:
    """Instantiate the provider named by config.AI_PROVIDER."""
    choice = config.AI_PROVIDER

    if choice == "gemini":
        if not config.GOOGLE_API_KEY:
            raise RuntimeError("AI_PROVIDER=gemini but GOOGLE_API_KEY (or API_KEY) is not set.")
        from providers.gemini_provider import GeminiProvider
        provider = GeminiProvider(config.GOOGLE_API_KEY, config.GEMINI_MODEL, config.MAX_LISTINGS)

    elif choice == "openai":
        if not config.OPENAI_API_KEY:
            raise RuntimeError("AI_PROVIDER=openai but OPENAI_API_KEY is not set.")
        from providers.openai_provider import OpenAIProvider
        provider = OpenAIProvider(config.OPENAI_API_KEY, config.OPENAI_MODEL, config.MAX_LISTINGS)

    elif choice == "anthropic":
        if not config.ANTHROPIC_API_KEY:
            raise RuntimeError("AI_PROVIDER=anthropic but ANTHROPIC_API_KEY is not set.")
        from providers.anthropic_provider import AnthropicProvider
        provider = AnthropicProvider(config.ANTHROPIC_API_KEY, config.ANTHROPIC_MODEL, config.MAX_LISTINGS)

    else:
        raise RuntimeError(
            f"Unknown AI_PROVIDER '{choice}'. Choose one of: {', '.join(PROVIDER_NAMES)}"
        )

    logger.info("Loaded provider: %s", provider.full_name)
    return provider


def get_provider() -> ShoppingProvider:
    global _provider
    if _provider is None:
        _provider = _build_provider()
    return _provider


def _log_outcome(kind: str, result: ProviderResult) -> None:
    logger.info(
        "[%s] %s search %s: %d listing(s) latency=%dms cost=%s",
        result.provider_name, kind, result.status.value,
        len(result.result.search_results), result.latency_ms, result.cost_str,
    )


# ── Core search functions ─────────────────────────────────────────────────────

async def identify_and_search(
    image: ImagePayload,
    location: Optional[str] = None,
) -> ProviderResult:
    """Identify the main product in `image` and find listings for it."""
    result = await get_provider().identify_and_search(image, location)
    _log_outcome("image", result)
    return result


async def search_with_text(
    query: str,
    location: Optional[str] = None,
) -> ProviderResult:
    """Identify the product named by `query` and find listings for it."""
    result = await get_provider().search_with_text(query, location)
    _log_outcome("text", result)
    return result
