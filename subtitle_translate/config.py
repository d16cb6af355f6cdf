"""Configuration constants, engine defaults, and .env loading.

WHY: Centralizes all configurable values so they are easy to find,
update, and override. Backend URLs, batching budgets, and throttling
limits are plain module-level values, not buried in logic, so the CLI
and tests can read the same defaults.

HOW: python-dotenv loads the .env file on import. Every default can be
overridden through an environment variable. load_api_key() returns the
optional LibreTranslate key.

RULES:
- All defaults can be overridden via environment variables
- The API key is loaded from .env / the environment, never hardcoded
- SUPPORTED_EXTENSIONS lists subtitle file extensions the CLI accepts
  (.ass and .ssa are read but never written)
- Numeric values are parsed once at import; malformed values fall back
  to the built-in default
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

# Load .env from the project root (where the script is run from)
load_dotenv()


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


# ---------------------------------------------------------------------------
# Supported subtitle file extensions
# ---------------------------------------------------------------------------

SUPPORTED_EXTENSIONS: dict[str, str] = {
    ".srt": "srt",
    ".vtt": "vtt",
    ".ass": "ass",
    ".ssa": "ssa",
}
"""Subtitle file extensions (lowercase, with dot) mapped to codec keys."""

# ---------------------------------------------------------------------------
# Backend configuration defaults
# ---------------------------------------------------------------------------

LIBRETRANSLATE_URL = os.getenv("LIBRETRANSLATE_URL", "http://localhost:5000/translate")
DEFAULT_BACKEND = os.getenv("SUBTITLE_TRANSLATE_BACKEND", "libretranslate")
DEFAULT_SOURCE_LANGUAGE = os.getenv("SUBTITLE_TRANSLATE_SOURCE_LANGUAGE", "auto")

# ---------------------------------------------------------------------------
# Engine defaults
# ---------------------------------------------------------------------------

DEFAULT_MAX_BATCH_CHARS = _env_int("SUBTITLE_TRANSLATE_MAX_BATCH_CHARS", 1000)
DEFAULT_CONCURRENCY = _env_int("SUBTITLE_TRANSLATE_CONCURRENCY", 4)
DEFAULT_RATE_LIMIT = _env_int("SUBTITLE_TRANSLATE_RATE_LIMIT", 10)
DEFAULT_RATE_WINDOW_S = _env_float("SUBTITLE_TRANSLATE_RATE_WINDOW", 1.0)
DEFAULT_MAX_ATTEMPTS = _env_int("SUBTITLE_TRANSLATE_MAX_ATTEMPTS", 4)
DEFAULT_REQUEST_TIMEOUT_S = _env_float("SUBTITLE_TRANSLATE_TIMEOUT", 30.0)
DEFAULT_BACKOFF_INITIAL_S = 0.5
DEFAULT_BACKOFF_FACTOR = 2.0
DEFAULT_BACKOFF_MAX_S = 8.0
DEFAULT_FAILURE_POLICY = os.getenv("SUBTITLE_TRANSLATE_FAILURE_POLICY", "degraded").lower()


def load_api_key() -> str | None:
    """Load the LibreTranslate API key from the environment.

    WHY: Public LibreTranslate instances require a key; self-hosted ones
    usually do not. Loading it from the environment (via .env) keeps it
    out of source code and shell history.

    HOW: Reads LIBRETRANSLATE_API_KEY from os.environ (populated by
    python-dotenv).

    RULES:
    - Returns None when the key is missing or blank
    - Whitespace around the key is stripped
    """
    key = os.getenv("LIBRETRANSLATE_API_KEY", "").strip()
    return key or None
