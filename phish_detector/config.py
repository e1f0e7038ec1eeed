"""
Configuration Module
=====================
Loads environment variables from .env file for:
- API_KEY: Optional key required in the X-API-Key header of incoming requests
- LLM_*: Chat-completions endpoint, credentials, model and timeouts
- MAX_ROUNDS / RUN_DEADLINE_SECONDS: Guards on a single detection run
- URL_SCANNER*: Which URL scanner backs the checkUrl tool, and its settings

Values are read once at import time. Missing credentials are reported
when the live detector is built (see require()), so the module can be
imported by tests without a configured environment.
"""

import os
from dotenv import load_dotenv

load_dotenv()


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name, "")
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name, "")
    try:
        return float(raw)
    except ValueError:
        return default


def _get_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if raw in {"1", "true", "yes", "on"}:
        return True
    if raw in {"0", "false", "no", "off"}:
        return False
    return default


API_KEY: str = os.getenv("API_KEY", "")

# ---------- MODEL PROVIDER ----------

LLM_PROVIDER: str = os.getenv("LLM_PROVIDER", "openai").strip().lower()
LLM_API_URL: str = os.getenv("LLM_API_URL", "https://api.openai.com/v1/chat/completions")
LLM_API_KEY: str = os.getenv("LLM_API_KEY", "")
LLM_MODEL: str = os.getenv("LLM_MODEL", "gpt-4o-mini")
LLM_TEMPERATURE: float = _get_float("LLM_TEMPERATURE", 0.0)
LLM_TIMEOUT_SECONDS: int = _get_int("LLM_TIMEOUT_SECONDS", 30)

# ---------- DETECTION RUN GUARDS ----------

MAX_ROUNDS: int = _get_int("MAX_ROUNDS", 10)
RUN_DEADLINE_SECONDS: int = _get_int("RUN_DEADLINE_SECONDS", 120)

# ---------- URL SCANNER ----------

URL_SCANNER: str = os.getenv("URL_SCANNER", "stub").strip().lower()
URL_SCANNER_STUB_VERDICT: str = os.getenv("URL_SCANNER_STUB_VERDICT", "URL is malicious")
SAFE_BROWSING_API_KEY: str = os.getenv("SAFE_BROWSING_API_KEY", "")
URL_FETCH_TIMEOUT_SECONDS: int = _get_int("URL_FETCH_TIMEOUT_SECONDS", 5)
URL_FETCH_MAX_BYTES: int = _get_int("URL_FETCH_MAX_BYTES", 200_000)
URL_FETCH_ALLOW_PRIVATE: bool = _get_bool("URL_FETCH_ALLOW_PRIVATE", False)


def require(name: str) -> str:
    """
    Return a configured string setting, failing loudly if it is empty.

    Args:
        name: Name of a module-level setting (e.g. "LLM_API_KEY")

    Returns:
        The non-empty setting value

    Raises:
        RuntimeError: If the setting is missing or blank
    """
    value = globals().get(name, "")
    if not value:
        raise RuntimeError(f"{name} not set in environment, check .env file")
    return value
