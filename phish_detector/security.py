"""
API Security Module
====================
Handles API key verification for incoming requests.

When API_KEY is configured, every detection request must carry it in
the X-API-Key header; otherwise the endpoint is open (local use).
"""

from fastapi import Header, HTTPException

from phish_detector import config


def verify_api_key(x_api_key: str = Header(default="")) -> str | None:
    """
    Validate the X-API-Key header against the configured API key.

    Args:
        x_api_key: API key from X-API-Key header

    Returns:
        The API key string if valid (or no key is configured)

    Raises:
        HTTPException: 401 if a key is configured and does not match
    """
    if config.API_KEY and x_api_key != config.API_KEY:
        raise HTTPException(status_code=401, detail="Invalid or missing API key")
    return x_api_key
