import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env, but avoid during pytest to keep tests deterministic
if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv()


def _env_str(name: str, default: str = "") -> str:
    return os.getenv(name, default).strip()


def _env_float(name: str, default: float) -> float:
    try:
        return float(_env_str(name) or default)
    except ValueError:
        return default


def _chat_context_limit_default() -> int:
    """Number of prior turns sent with each assistant request.

    Reads CHAT_CONTEXT_LIMIT from env, clamps to [1, 200], defaults to 10.
    """
    try:
        v = int(_env_str("CHAT_CONTEXT_LIMIT") or "10")
    except ValueError:
        v = 10
    if v < 1:
        v = 1
    if v > 200:
        v = 200
    return v


def _notes_debounce_seconds_default() -> float:
    """Delay before a burst of notes edits is persisted. NOTES_DEBOUNCE_MS, default 500."""
    try:
        ms = int(_env_str("NOTES_DEBOUNCE_MS") or "500")
    except ValueError:
        ms = 500
    return max(0, ms) / 1000.0


@dataclass(frozen=True)
class Settings:
    api_base_url: str = "http://localhost:8787"
    http_timeout_seconds: float = 30.0
    chat_context_limit: int = 10
    notes_debounce_seconds: float = 0.5
    status_options: str = "full"
    vendor_token: Optional[str] = None
    chat_provider: str = "http"
    items_provider: str = "http"
    prefs_path: Optional[str] = None

    @classmethod
    def from_env(cls) -> "Settings":
        status_options = (_env_str("COMPASS_STATUS_OPTIONS") or "full").lower()
        if status_options not in ("full", "vendor"):
            status_options = "full"
        return cls(
            api_base_url=(_env_str("COMPASS_API_URL") or "http://localhost:8787").rstrip("/"),
            http_timeout_seconds=_env_float("AI_HTTP_TIMEOUT_SECONDS", 30.0),
            chat_context_limit=_chat_context_limit_default(),
            notes_debounce_seconds=_notes_debounce_seconds_default(),
            status_options=status_options,
            vendor_token=_env_str("COMPASS_VENDOR_TOKEN") or None,
            chat_provider=(_env_str("AI_PROVIDER_CHAT") or _env_str("AI_PROVIDER") or "http").lower(),
            items_provider=(_env_str("COMPASS_ITEMS_PROVIDER") or "http").lower(),
            prefs_path=_env_str("COMPASS_PREFS_PATH") or None,
        )
