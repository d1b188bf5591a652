"""
style.py — Complete visual style system for the bot.

Design language:
  • Structured cards with consistent emoji icons
  • Unicode box-drawing dividers
  • Clear visual hierarchy: header → body → footer
  • MarkdownV2 throughout

All text that goes into Telegram messages should be formatted through this module.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

import config

# ── Escape ────────────────────────────────────────────────────────────────────

def esc(text) -> str:
    """Escape all MarkdownV2 special characters."""
    text = str(text)
    for ch in r"\_*[]()~`>#+-=|{}.!":
        text = text.replace(ch, f"\\{ch}")
    return text


# ── Visual constants ──────────────────────────────────────────────────────────

DIV   = "━━━━━━━━━━━━━━━━━━━━━━━━━━"    # thick divider
SDIV  = "┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄"    # subtle divider

MAX_MESSAGE = 4050
MAX_PRODUCT_TEXT = 300


def _utf16_len(text: str) -> int:
    # Telegram counts message length in UTF-16 code units
    return len(text.encode("utf-16-le")) // 2


def _more_line(hidden: int) -> str:
    return f"\n\n_…and {hidden} more_" if hidden else ""


def _fit_blocks(head: str, blocks: list[str], sep: str, tail) -> str:
    """
    Join as many whole blocks after `head` as fit under MAX_MESSAGE, never
    cutting inside one, so every MarkdownV2 span stays closed. `tail(shown,
    hidden)` renders the closing lines.
    """
    kept: list[str] = []
    for i, block in enumerate(blocks):
        # Longest possible tail for this count, so the final text fits too
        bound = 0 if i == len(blocks) - 1 else len(blocks)
        candidate = head + sep.join(kept + [block]) + tail(i + 1, bound)
        if _utf16_len(candidate) > MAX_MESSAGE:
            break
        kept.append(block)
    return head + sep.join(kept) + tail(len(kept), len(blocks) - len(kept))


def fmt_timestamp(millis: int) -> str:
    return datetime.fromtimestamp(millis / 1000).strftime("%Y-%m-%d %H:%M")


# ══════════════════════════════════════════════════════════════════════════════
# START / HELP
# ══════════════════════════════════════════════════════════════════════════════

def welcome(email: Optional[str] = None) -> str:
    greeting = f"👋 Signed in as *{esc(email)}*\n\n" if email else ""
    return (
        f"🛍️ *SNAP & SHOP AI*\n"
        f"{DIV}\n\n"
        f"{greeting}"
        f"Your visual shopping assistant\\.\n\n"
        f"✨  *What I can do*\n"
        f"▸ Identify a product from a photo\n"
        f"▸ Find it from a text description\n"
        f"▸ List online and nearby stores selling it\n"
        f"▸ Keep a history of your photo searches\n\n"
        f"{DIV}\n"
        + ("_📸 Send a photo or type what you're looking for_"
           if email else "_🔐 /signup or /login to start searching_")
    )


def help_text() -> str:
    camera = "▸ /camera — snap a photo with the kiosk camera\n" if config.CAMERA_ENABLED else ""
    return (
        f"📖 *HOW TO USE*\n"
        f"{DIV}\n\n"
        f"*1️⃣  Sign in*\n"
        f"▸ /signup `email` `password`\n"
        f"▸ /login `email` `password`\n\n"
        f"*2️⃣  Search*\n"
        f"▸ Send a product photo, then tap 🔎 *Search Shops*\n"
        f"▸ Or just type what you want, e\\.g\\. _red running shoes_\n"
        f"{camera}\n"
        f"*3️⃣  Profile*\n"
        f"▸ /location `city` — prefer stores near you\n"
        f"▸ /profile — your details\n"
        f"▸ /history — past photo searches\n"
        f"▸ /logout\n\n"
        f"{DIV}\n"
        f"_Commands: /start · /help · /profile · /history_"
    )


# ══════════════════════════════════════════════════════════════════════════════
# AUTH
# ══════════════════════════════════════════════════════════════════════════════

def login_required() -> str:
    return (
        f"🔐 *Please log in to start searching*\n"
        f"{SDIV}\n"
        f"▸ /signup `email` `password`\n"
        f"▸ /login `email` `password`"
    )


def auth_usage(command: str) -> str:
    return f"✍️ Usage: /{command} `email` `password`"


def auth_error(message: str) -> str:
    return f"⚠️ {esc(message)}"


def signed_up(email: str) -> str:
    return (
        f"🎉 *Account created*\n"
        f"{SDIV}\n"
        f"Welcome, *{esc(email)}*\\!\n"
        f"_📸 Send a photo or type what you're looking for_"
    )


def logged_in(email: str) -> str:
    return (
        f"✅ *Welcome back\\!*\n"
        f"{SDIV}\n"
        f"Signed in as *{esc(email)}*"
    )


def logged_out() -> str:
    return "👋 You have been logged out\\."


# ══════════════════════════════════════════════════════════════════════════════
# PROFILE / HISTORY
# ══════════════════════════════════════════════════════════════════════════════

def profile_card(account) -> str:
    location = esc(account.location) if account.location else "_not set_"
    return (
        f"👤 *{esc(account.email)}*\n"
        f"{DIV}\n"
        f"📍 Location: {location}\n"
        f"🕘 Photo searches: {len(account.history)}\n"
        f"{SDIV}\n"
        f"_/location `city` to change where I look for nearby stores_"
    )


def location_saved(location: str) -> str:
    return f"📍 Location saved: *{esc(location)}*"


def location_current(location: Optional[str]) -> str:
    if location:
        return f"📍 Your location: *{esc(location)}*\n_Send /location `new place` to change it_"
    return "📍 No location set\\.\n_Send /location `city` to prefer stores near you_"


def profile_picture_saved() -> str:
    return "🖼️ Profile picture updated\\."


def history_list(account) -> str:
    if not account.history:
        return (
            f"🕘 *SEARCH HISTORY*\n"
            f"{DIV}\n\n"
            f"Your search history is empty\\.\n"
            f"_Start a new search to see your history here\\!_"
        )
    head = f"🕘 *SEARCH HISTORY*\n{DIV}\n\n"
    entries = [
        f"*{i}\\.* {esc(entry.result.identified_product[:80])}\n"
        f"   _{esc(fmt_timestamp(entry.timestamp))}_"
        for i, entry in enumerate(account.history, 1)
    ]

    def tail(shown: int, hidden: int) -> str:
        return _more_line(hidden) + f"\n\n{SDIV}\n_Tap an entry to see its results_"

    return _fit_blocks(head, entries, "\n", tail)


# ══════════════════════════════════════════════════════════════════════════════
# CAPTURE / LOADING
# ══════════════════════════════════════════════════════════════════════════════

def image_ready() -> str:
    return (
        f"📸 *Image ready*\n"
        f"{SDIV}\n"
        f"Tap 🔎 *Search Shops* to identify it and find stores\\."
    )


def loading_image_search(location: Optional[str] = None) -> str:
    near = f"\n📍 Near _{esc(location)}_" if location else ""
    return (
        f"🔍 *AI is identifying your item…*\n"
        f"{SDIV}\n"
        f"⠋ Looking for shops{near}"
    )


def loading_text_search(query: str, location: Optional[str] = None) -> str:
    near = f"\n📍 Near _{esc(location)}_" if location else ""
    return (
        f"🔍 *Searching*\n"
        f"{SDIV}\n"
        f"🏷️ _{esc(query[:80])}_{near}\n\n"
        f"⠙ Looking for shops…"
    )


def search_in_progress() -> str:
    return "⏳ A search is already running — please wait\\."


# ══════════════════════════════════════════════════════════════════════════════
# RESULTS
# ══════════════════════════════════════════════════════════════════════════════

def result_item_card(item, index: int) -> str:
    title = esc(str(item.title)[:100])
    store = esc(str(item.store_name)[:60]) if item.store_name else "Online Store"
    price = f"💰 *{esc(str(item.price)[:40])}*" if item.price else "💰 _Price not listed_"
    return (
        f"*{index}\\.*  {title}\n"
        f"🏬 {store}   {price}"
    )


def results_page(result, visible_items, run=None, show_cost: bool = False) -> str:
    """Identified product + the visible listings."""
    header = (
        f"✨ *AI RESULTS*\n"
        f"{DIV}\n"
        f"🏷️ *Identified Product*\n"
        f"{esc(str(result.identified_product)[:MAX_PRODUCT_TEXT])}\n"
        f"{SDIV}\n"
        f"🛒 *Shopping Results*\n\n"
    )
    total = len(result.search_results)

    def tail(shown: int, hidden: int) -> str:
        footer_parts = [f"🔍 {shown} of {total} results" if total else "🔍 0 results"]
        if show_cost and run is not None:
            footer_parts.append(f"⚡ {run.latency_ms}ms  💸 {run.cost_str}")
        return _more_line(hidden) + f"\n\n{SDIV}\n_" + esc("   ·   ".join(footer_parts)) + "_"

    if not result.search_results:
        return header + "_No online shopping results found for this item\\._" + tail(0, 0)

    cards = [result_item_card(item, i) for i, item in enumerate(visible_items, 1)]
    return _fit_blocks(header, cards, f"\n{SDIV}\n", tail)


# ══════════════════════════════════════════════════════════════════════════════
# ERROR MESSAGES
# ══════════════════════════════════════════════════════════════════════════════

def error_search_failed(message: str) -> str:
    return (
        f"❌ *Error:* {esc(message)}\n"
        f"{SDIV}\n"
        f"_Try again, or start a new search with a photo or some text\\._"
    )


def error_not_configured() -> str:
    return (
        f"⚠️ *AI Provider Not Configured*\n"
        f"{DIV}\n\n"
        f"The bot owner needs to set an API key for the configured provider\\.\n\n"
        f"▸ `GOOGLE_API_KEY` for Gemini \\(default\\)\n"
        f"▸ `OPENAI_API_KEY` or `ANTHROPIC_API_KEY` with `AI_PROVIDER`"
    )


def error_camera_unavailable() -> str:
    return (
        f"📷 *Camera not available*\n"
        f"{SDIV}\n"
        f"Camera not available or permission denied\\.\n"
        f"_Please try uploading an image instead — just send a photo here\\._"
    )


def error_camera_disabled() -> str:
    return "📷 The camera is not enabled on this bot\\. _Send a photo instead\\._"


def not_an_image() -> str:
    return (
        f"🖼️ *Unsupported file*\n"
        f"{SDIV}\n"
        f"Please send a JPEG, PNG or WebP image\\."
    )


def session_expired() -> str:
    return "⚠️ Nothing to search — please send a new photo\\."


def history_entry_missing() -> str:
    return "⚠️ That history entry no longer exists\\."
