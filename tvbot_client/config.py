"""Configuration constants and .env loading.

WHY: Centralizes every configurable value (backend URL, state file
location, display timeouts) so they are easy to find, update, and
override without touching client logic.

HOW: python-dotenv loads the .env file on import. Constants are module-level
values read from the environment with sensible defaults. load_base_url()
gives a clear error when the configured backend URL is unusable.

RULES:
- Every default can be overridden via an environment variable
- The session header name is fixed by the backend contract
- Durable client state lives in a single JSON file under STATE_DIR
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (where the client is run from)
load_dotenv()

# ---------------------------------------------------------------------------
# Backend contract
# ---------------------------------------------------------------------------

DEFAULT_API_BASE_URL = "https://xat-fg8p.onrender.com"

API_BASE_URL = os.getenv("TVBOT_API_BASE_URL", DEFAULT_API_BASE_URL)

SESSION_HEADER = "X-Session-ID"
"""Request/response header carrying the opaque session identity."""

SESSION_STORAGE_KEY = "x-session-id"
"""Key under which the session identity is persisted in the state file."""

REGENERATE_METHOD = os.getenv("TVBOT_REGENERATE_METHOD", "GET").upper()

# ---------------------------------------------------------------------------
# Durable client state
# ---------------------------------------------------------------------------

STATE_DIR = Path(
    os.getenv("TVBOT_STATE_DIR", str(Path.home() / ".tvbot_client"))
).expanduser()
STATE_FILE = STATE_DIR / "state.json"

# ---------------------------------------------------------------------------
# UI feedback timing
# ---------------------------------------------------------------------------

FLASH_TIMEOUT_S = float(os.getenv("TVBOT_FLASH_TIMEOUT", "5.0"))
COPY_ACK_S = float(os.getenv("TVBOT_COPY_ACK_SECONDS", "2.0"))
RECENT_ALERTS_LIMIT = int(os.getenv("TVBOT_RECENT_ALERTS_LIMIT", "10"))

# Auth-status polling (dashboard re-fetch until the bot is authenticated)
AUTH_POLL_INITIAL_INTERVAL_S = 2.0
AUTH_POLL_BACKOFF_FACTOR = 1.5
AUTH_POLL_MAX_INTERVAL_S = 15.0
AUTH_POLL_TIMEOUT_S = float(os.getenv("TVBOT_AUTH_POLL_TIMEOUT", str(10 * 60)))


def load_base_url(value: str | None = None) -> str:
    """Return the backend base URL without a trailing slash.

    WHY: A typo in TVBOT_API_BASE_URL would otherwise surface as an
    obscure network error on the first request.

    RULES:
    - Falls back to API_BASE_URL when value is None
    - Raises ValueError unless the URL starts with http:// or https://
    """
    url = (value or API_BASE_URL).strip()
    if not url.startswith(("http://", "https://")):
        raise ValueError(
            "Backend URL must start with http:// or https:// "
            "(got {!r}). Set TVBOT_API_BASE_URL in the .env file.".format(url)
        )
    return url.rstrip("/")
