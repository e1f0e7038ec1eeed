"""
Detector Factory
=================
Builds the model client, the URL scanner and the PhishingDetector from
configuration. Nothing here is a global singleton: each call returns a
fresh, fully wired detector, and callers (the FastAPI dependency, tests)
decide how long to keep it.
"""

import logging

from phish_detector import config
from phish_detector.core.detector import PhishingDetector
from phish_detector.core.url_scanner import UrlScanner, build_url_scanner
from phish_detector.llm.llm_client import ChatClient

logger = logging.getLogger(__name__)


def build_chat_client() -> ChatClient:
    return ChatClient(
        api_url=config.require("LLM_API_URL"),
        api_key=config.require("LLM_API_KEY"),
        model=config.require("LLM_MODEL"),
        provider=config.LLM_PROVIDER,
        temperature=config.LLM_TEMPERATURE,
        timeout=config.LLM_TIMEOUT_SECONDS,
    )


def build_configured_scanner() -> UrlScanner:
    """Create the URL scanner selected by URL_SCANNER."""
    kind = config.URL_SCANNER
    if kind == "stub":
        return build_url_scanner(kind, verdict=config.URL_SCANNER_STUB_VERDICT)
    if kind == "safe_browsing":
        return build_url_scanner(
            kind,
            api_key=config.require("SAFE_BROWSING_API_KEY"),
            timeout=config.URL_FETCH_TIMEOUT_SECONDS,
        )
    if kind == "fetch":
        return build_url_scanner(
            kind,
            timeout=config.URL_FETCH_TIMEOUT_SECONDS,
            max_bytes=config.URL_FETCH_MAX_BYTES,
            allow_private_network=config.URL_FETCH_ALLOW_PRIVATE,
        )
    raise RuntimeError(f"URL_SCANNER must be one of stub, safe_browsing, fetch (got '{kind}')")


def build_detector() -> PhishingDetector:
    """
    Wire a PhishingDetector from the current configuration.

    Raises:
        RuntimeError: If required settings are missing or invalid
    """
    scanner = build_configured_scanner()
    detector = PhishingDetector(
        build_chat_client(),
        scanner,
        max_rounds=config.MAX_ROUNDS,
        run_deadline=config.RUN_DEADLINE_SECONDS,
    )
    logger.info(f"Detector ready: model={config.LLM_MODEL}, scanner={scanner.name}, "
                f"max_rounds={config.MAX_ROUNDS}, deadline={config.RUN_DEADLINE_SECONDS}s")
    return detector
