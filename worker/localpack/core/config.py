"""Application configuration helpers.

Everything is read from the environment (optionally seeded from a `.env`
file) so the CLI, the Flask server and the offline scripts share one source.
"""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/144.0.0.0 Safari/537.36"
)
DEFAULT_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8"
DEFAULT_ACCEPT_LANGUAGE = "en-GB,en-US;q=0.9,en;q=0.8"
FETCH_BACKENDS = {"http", "browser"}


class ConfigError(RuntimeError):
    """Raised when an environment value cannot be interpreted."""


@dataclass(frozen=True)
class Settings:
    search_url: str = "https://www.google.com/search"
    results_mode: str = "1"
    page_size: int = 10
    max_pages: Optional[int] = None
    request_timeout: float = 20.0
    user_agent: str = DEFAULT_USER_AGENT
    accept: str = DEFAULT_ACCEPT
    accept_language: str = DEFAULT_ACCEPT_LANGUAGE
    default_phone_region: Optional[str] = None
    skip_missing_phone: bool = False
    fetch_backend: str = "http"
    proxy_url: str = ""
    export_dir: str = "."

    @property
    def request_headers(self) -> dict:
        return {
            "User-Agent": self.user_agent,
            "Accept": self.accept,
            "Accept-Language": self.accept_language,
        }


def _get_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc
    if value < 0:
        raise ConfigError(f"{name} must not be negative, got {value}")
    return value


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {value}")
    return value


def _get_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    lowered = raw.strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    raise ConfigError(f"{name} must be a boolean flag, got {raw!r}")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    page_size = _get_int("SEARCH_PAGE_SIZE", 10)
    if not page_size:
        raise ConfigError("SEARCH_PAGE_SIZE must be greater than zero")

    # 0 behaves like unset: no page cap.
    max_pages = _get_int("SEARCH_MAX_PAGES", None) or None

    default_phone_region_raw = os.getenv("DEFAULT_PHONE_REGION")
    default_phone_region = default_phone_region_raw.strip().upper() if default_phone_region_raw else None

    fetch_backend = (os.getenv("FETCH_BACKEND") or "http").strip().lower()
    if fetch_backend not in FETCH_BACKENDS:
        raise ConfigError(f"FETCH_BACKEND must be one of {sorted(FETCH_BACKENDS)}, got {fetch_backend!r}")

    if max_pages is None:
        logger.warning("SEARCH_MAX_PAGES is not set; pagination stops only when an empty page is returned.")
    if not default_phone_region:
        logger.warning("DEFAULT_PHONE_REGION is not configured; only numbers with a country code will validate.")

    return Settings(
        search_url=os.getenv("SEARCH_BASE_URL") or Settings.search_url,
        results_mode=os.getenv("SEARCH_RESULTS_MODE") or Settings.results_mode,
        page_size=page_size,
        max_pages=max_pages,
        request_timeout=_get_float("REQUEST_TIMEOUT_SECONDS", Settings.request_timeout),
        user_agent=os.getenv("SCRAPER_USER_AGENT") or DEFAULT_USER_AGENT,
        accept_language=os.getenv("SCRAPER_ACCEPT_LANGUAGE") or DEFAULT_ACCEPT_LANGUAGE,
        default_phone_region=default_phone_region,
        skip_missing_phone=_get_bool("SKIP_MISSING_PHONE"),
        fetch_backend=fetch_backend,
        proxy_url=(os.getenv("FETCH_PROXY_URL") or "").strip(),
        export_dir=os.getenv("EXPORT_DIR") or Settings.export_dir,
    )
