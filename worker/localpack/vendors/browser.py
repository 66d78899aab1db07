"""Headless-browser page fetcher backed by Playwright."""

from __future__ import annotations

import logging
from typing import Dict, Optional

try:
    from playwright.sync_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError, sync_playwright
except ImportError:  # pragma: no cover - optional dependency
    sync_playwright = None
    PlaywrightError = Exception
    PlaywrightTimeoutError = Exception

from localpack.models import FetchFailure

logger = logging.getLogger(__name__)


class BrowserFetcher:
    """Render result pages in headless Chromium and return the final DOM as HTML."""

    def __init__(self, *, timeout: float = 20.0, headers: Optional[Dict[str, str]] = None) -> None:
        if sync_playwright is None:
            raise RuntimeError("playwright is not installed; install the 'browser' extra")
        self._playwright = None
        self._browser = None
        self._timeout_ms = int(timeout * 1000)
        extra_headers = dict(headers or {})
        self._user_agent = extra_headers.pop("User-Agent", None)
        self._extra_headers = extra_headers

    def _ensure_browser(self) -> None:
        if self._playwright is None:
            self._playwright = sync_playwright().start()
            self._browser = self._playwright.chromium.launch(headless=True)

    def __call__(self, url: str) -> str:
        self._ensure_browser()
        context = self._browser.new_context(user_agent=self._user_agent, extra_http_headers=self._extra_headers)
        page = context.new_page()
        logger.info("Rendering %s", url)
        try:
            try:
                response = page.goto(url, wait_until="domcontentloaded", timeout=self._timeout_ms)
                html = page.content()
            except PlaywrightTimeoutError as exc:
                logger.error("Playwright timed out fetching %s", url)
                raise FetchFailure(url, f"Timed out after {self._timeout_ms}ms") from exc
            except PlaywrightError as exc:
                logger.error("Playwright failed for %s: %s", url, exc)
                raise FetchFailure(url, str(exc)) from exc
        finally:
            context.close()

        if response is not None and not response.ok:
            logger.error("Browser fetch returned non-2xx status (%s) for %s", response.status, url)
            raise FetchFailure(url, f"HTTP {response.status}", status_code=response.status)
        return html

    def close(self) -> None:
        if self._browser is not None:
            self._browser.close()
            self._browser = None
        if self._playwright is not None:
            self._playwright.stop()
            self._playwright = None

    def __enter__(self) -> "BrowserFetcher":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
