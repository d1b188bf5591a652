"""
Central configuration — reads from .env file.

Every value is read once at import time. Nothing here is required at import
so that tests and tooling can load the modules without a real bot token;
missing values are reported when the bot is built or a provider is first used.
"""
import os
from dotenv import load_dotenv

load_dotenv()

# ── Telegram ──────────────────────────────────────────────────────────────────
TELEGRAM_BOT_TOKEN: str = os.getenv("TELEGRAM_BOT_TOKEN", "").strip()

# ── AI provider ───────────────────────────────────────────────────────────────
# Which generative model answers the shopping queries:
#   gemini    → Google Gemini via google-genai (default)
#   openai    → OpenAI chat completions with a JSON schema response format
#   anthropic → Anthropic messages API, schema inlined into the system prompt
AI_PROVIDER: str = os.getenv("AI_PROVIDER", "gemini").strip().lower()

# API_KEY is accepted for Gemini as a bootstrap alias.
GOOGLE_API_KEY: str | None    = os.getenv("GOOGLE_API_KEY") or os.getenv("API_KEY")
OPENAI_API_KEY: str | None    = os.getenv("OPENAI_API_KEY")
ANTHROPIC_API_KEY: str | None = os.getenv("ANTHROPIC_API_KEY")

GEMINI_MODEL: str    = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
OPENAI_MODEL: str    = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
ANTHROPIC_MODEL: str = os.getenv("ANTHROPIC_MODEL", "claude-3-5-haiku-latest")

# Upper bound on listings the model is asked for.
MAX_LISTINGS: int = int(os.getenv("MAX_LISTINGS", "20"))

# ── Bot behaviour ─────────────────────────────────────────────────────────────
# Results shown at first, and how many more each "Show more" reveals.
RESULTS_PER_PAGE: int = int(os.getenv("RESULTS_PER_PAGE", "6"))

# Show per-request latency/cost info under results (useful during development)
SHOW_COST_INFO: bool = os.getenv("SHOW_COST_INFO", "false").lower() == "true"

# ── Camera (kiosk deployments with a webcam attached to the bot host) ─────────
CAMERA_ENABLED: bool     = os.getenv("CAMERA_ENABLED", "false").lower() == "true"
CAMERA_INDEX: int        = int(os.getenv("CAMERA_INDEX", "0"))
CAMERA_JPEG_QUALITY: int = int(os.getenv("CAMERA_JPEG_QUALITY", "90"))

# ── Storage ───────────────────────────────────────────────────────────────────
DATA_DIR: str = os.getenv("DATA_DIR", "data")
