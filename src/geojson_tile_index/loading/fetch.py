"""
Remote GeoJSON fetching.
"""

from typing import Any, Optional

import requests
import structlog

from ..utils.exceptions import FetchError


logger = structlog.get_logger(component="fetch")

ACCEPT_HEADER = "application/geo+json, application/json;q=0.9"


def fetch_json(url: str, timeout: float = 30.0, session: Optional[requests.Session] = None) -> Any:
    """
    Fetch and decode a JSON document.

    Args:
        url: Absolute http(s) URL
        timeout: Connect and read timeout in seconds
        session: Optional session to reuse connections

    Returns:
        Decoded JSON value

    Raises:
        FetchError: On connection errors, non-2xx responses or invalid JSON
    """
    http = session or requests
    logger.info("Fetching GeoJSON", url=url)

    try:
        response = http.get(url, timeout=timeout, headers={"Accept": ACCEPT_HEADER})
        response.raise_for_status()
    except requests.RequestException as e:
        logger.error("GeoJSON fetch failed", url=url, error=str(e))
        raise FetchError(f"Failed to fetch {url}: {e}", e) from e

    try:
        data = response.json()
    except ValueError as e:
        logger.error("Fetched document is not JSON", url=url, error=str(e))
        raise FetchError(f"Response from {url} is not valid JSON", e) from e

    logger.debug("GeoJSON fetched", url=url, size_bytes=len(response.content))
    return data
