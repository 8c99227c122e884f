"""Environment variable configuration for search providers and fetching.

API keys are loaded in priority order:
  1. Shell environment variables (highest priority)
  2. .env file in current directory
  3. ~/.evidence/.env (persistent config, set via `evidence env set`)

Run `evidence env` to see which keys are configured.
Run `evidence env set KEY value` to save a key persistently.

Provider chain by configured key:
    SERPER_API_KEY  ->  Google search via Serper (premium, tried first)
    XAI_API_KEY     ->  Grok as a search substitute
    (no key)        ->  DuckDuckGo Instant Answer (always-available fallback)
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Persistent config location
EVIDENCE_DIR = Path.home() / ".evidence"
PERSISTENT_ENV = EVIDENCE_DIR / ".env"

# Load in reverse priority order (later loads don't overwrite existing)
# 1. ~/.evidence/.env (lowest priority, persistent defaults)
if PERSISTENT_ENV.exists():
    load_dotenv(PERSISTENT_ENV)

# 2. .env in current directory (mid priority)
load_dotenv()

# 3. Shell env vars already set (highest priority, dotenv won't overwrite)


# --- Tunables ---

USER_AGENT = "evidence-cli/0.1 (+https://github.com/evidence-cli/evidence-cli)"

FETCH_TIMEOUT = float(os.getenv("FETCH_TIMEOUT", "10"))
FETCH_RETRIES = 2
FETCH_BACKOFF = 1.0  # seconds, multiplied by attempt number
MAX_CONTENT_LENGTH = 5 * 1024 * 1024
MAX_PAGE_TEXT = 10_000
ALLOWED_CONTENT_TYPES = ("text/html", "application/xhtml+xml", "text/plain")
BATCH_CONCURRENCY = 3

PAGE_CACHE_SIZE = 500
PAGE_CACHE_MAX_AGE = 15 * 60
PAGE_CACHE_FRESH = 5 * 60

RATE_LIMIT_REQUESTS = 10
RATE_LIMIT_WINDOW = 60.0

SEARCH_CACHE_SIZE = 200
SEARCH_CACHE_TTL = float(os.getenv("SEARCH_CACHE_TTL", "300"))

DEFAULT_BLACKLIST = ("wikipedia.org", "wikipedia.com")


# --- Persistent config ---

def save_key(name: str, value: str) -> Path:
    """Save an API key to ~/.evidence/.env for persistent use."""
    EVIDENCE_DIR.mkdir(parents=True, exist_ok=True)

    lines: list[str] = []
    replaced = False
    if PERSISTENT_ENV.exists():
        for line in PERSISTENT_ENV.read_text().splitlines():
            if line.startswith(f"{name}="):
                lines.append(f"{name}={value}")
                replaced = True
            else:
                lines.append(line)

    if not replaced:
        lines.append(f"{name}={value}")

    PERSISTENT_ENV.write_text("\n".join(lines) + "\n")

    # Also set in current process
    os.environ[name] = value

    return PERSISTENT_ENV


# --- API key accessors ---

def has_key(name: str) -> bool:
    return bool(os.getenv(name))


def get_serper_key() -> str:
    key = os.getenv("SERPER_API_KEY", "")
    if not key:
        raise ValueError(
            "SERPER_API_KEY is not set. "
            "Run `evidence env set SERPER_API_KEY <your-key>` to configure it."
        )
    return key


def get_xai_key() -> str:
    key = os.getenv("XAI_API_KEY", "")
    if not key:
        raise ValueError(
            "XAI_API_KEY is not set. "
            "Run `evidence env set XAI_API_KEY <your-key>` to configure it."
        )
    return key


def get_xai_model() -> str:
    return os.getenv("XAI_MODEL") or "grok-3-mini"


def get_blacklist() -> tuple[str, ...]:
    """Default disallowed domains plus any listed in EVIDENCE_BLACKLIST."""
    extra = os.getenv("EVIDENCE_BLACKLIST", "")
    domains = [d.strip().lower() for d in extra.split(",") if d.strip()]
    return DEFAULT_BLACKLIST + tuple(d for d in domains if d not in DEFAULT_BLACKLIST)


# --- Status check ---

VALID_KEYS = {"SERPER_API_KEY", "XAI_API_KEY", "XAI_MODEL", "EVIDENCE_BLACKLIST"}

ENV_VARS = {
    "SERPER_API_KEY": {
        "required_by": ["premium search provider (tried first)"],
        "description": "Google search via Serper.dev",
    },
    "XAI_API_KEY": {
        "required_by": ["LLM search provider (second in chain)"],
        "description": "Grok (xAI) used as a search substitute",
    },
    "EVIDENCE_BLACKLIST": {
        "required_by": ["source deduplication (optional)"],
        "description": "Extra comma-separated domains to exclude from sources",
    },
}


def check_env() -> list[tuple[str, bool, dict]]:
    """Return list of (var_name, is_set, info) for all known env vars."""
    result = []
    for var, info in ENV_VARS.items():
        is_set = bool(os.getenv(var))
        result.append((var, is_set, info))
    return result
