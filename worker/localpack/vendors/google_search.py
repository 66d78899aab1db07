"""Client utilities for fetching local-pack search result pages."""

import logging
import re
from typing import Dict, Optional, Tuple
from urllib.parse import urlencode

import requests

from localpack.core.config import Settings, get_settings
from localpack.models import FetchFailure

logger = logging.getLogger(__name__)
_SESSION = requests.Session()
_CHARSET_REGEX = re.compile(r"charset=([^\s;]+)", re.IGNORECASE)


def build_search_params(query: str, offset: int, settings: Optional[Settings] = None) -> Dict[str, str]:
    """Query parameters for one page: search text, zero-based offset and the local results mode."""
    if not query or not query.strip():
        raise ValueError("Query must be provided for search lookups.")
    if offset < 0:
        raise ValueError("Offset must not be negative.")

    settings = settings or get_settings()
    return {
        "q": query.strip(),
        "start": str(offset),
        "udm": settings.results_mode,
    }


def build_search_url(query: str, offset: int = 0, settings: Optional[Settings] = None) -> str:
    settings = settings or get_settings()
    params = build_search_params(query, offset, settings)
    return f"{settings.search_url}?{urlencode(params)}"


def _decode(response: requests.Response) -> str:
    content_type = response.headers.get("Content-Type", "")
    if not _CHARSET_REGEX.search(content_type):
        response.encoding = "utf-8"
    return response.text


def _request_defaults(
    headers: Optional[Dict[str, str]], timeout: Optional[float]
) -> Tuple[Dict[str, str], float]:
    """Fill in headers/timeout from settings, loading them only when one is missing."""
    if headers and timeout:
        return headers, timeout
    settings = get_settings()
    return headers or settings.request_headers, timeout or settings.request_timeout


def fetch_page(
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
    timeout: Optional[float] = None,
    session: Optional[requests.Session] = None,
) -> str:
    """GET one result page and return its HTML.

    There is no retry: a timeout, transport error or non-2xx status raises
    FetchFailure and the caller decides what to do with the search.
    """
    session = session or _SESSION
    headers, timeout = _request_defaults(headers, timeout)

    logger.info("Fetching %s", url)
    try:
        response = session.get(url, headers=headers, timeout=timeout, allow_redirects=True)
    except requests.Timeout as exc:
        logger.error("Timed out after %ss fetching %s", timeout, url)
        raise FetchFailure(url, f"Timed out after {timeout}s") from exc
    except requests.RequestException as exc:
        logger.error("Failed to fetch %s: %s", url, exc)
        raise FetchFailure(url, str(exc)) from exc

    if not (200 <= response.status_code < 300):
        logger.error("Fetch returned non-2xx status (%s) for %s", response.status_code, url)
        raise FetchFailure(url, f"HTTP {response.status_code}", status_code=response.status_code)

    return _decode(response)


def fetch_via_proxy(
    url: str,
    *,
    proxy_url: str,
    headers: Optional[Dict[str, str]] = None,
    timeout: Optional[float] = None,
    session: Optional[requests.Session] = None,
) -> str:
    """Fetch a page through a fetch proxy that answers {"data": "<html>"}."""
    session = session or _SESSION
    headers, timeout = _request_defaults(headers, timeout)

    logger.info("Fetching %s via proxy %s", url, proxy_url)
    try:
        response = session.get(proxy_url, params={"url": url}, headers=headers, timeout=timeout)
    except requests.RequestException as exc:
        logger.error("Proxy request for %s failed: %s", url, exc)
        raise FetchFailure(url, str(exc)) from exc

    if not (200 <= response.status_code < 300):
        logger.error("Proxy returned non-2xx status (%s) for %s", response.status_code, url)
        raise FetchFailure(url, f"Proxy HTTP {response.status_code}", status_code=response.status_code)

    try:
        payload = response.json()
    except ValueError as exc:
        raise FetchFailure(url, "Proxy response is not JSON") from exc

    html = payload.get("data") if isinstance(payload, dict) else None
    if not isinstance(html, str):
        raise FetchFailure(url, "Proxy response has no 'data' string")
    return html
