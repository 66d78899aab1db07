"""Core data models shared by the extraction pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class ScrapeError(RuntimeError):
    """Base class for errors raised while scraping result pages."""


class FetchFailure(ScrapeError):
    """Raised when a result page could not be retrieved (timeout, transport error, non-2xx)."""

    def __init__(self, url: str, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class NoResultsContainer(ScrapeError):
    """Raised when a page has no listings container at all."""


@dataclass(frozen=True, slots=True)
class Record:
    """One business listing extracted from a result card."""

    title: str = "N/A"
    category: str = ""
    reviews: int = 0
    stars: float = 0.0
    complete_phone_number: str = ""
    address: str = ""
    url: str = ""

    def as_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "category": self.category,
            "reviews": self.reviews,
            "stars": self.stars,
            "completePhoneNumber": self.complete_phone_number,
            "address": self.address,
            "url": self.url,
        }


@dataclass(frozen=True)
class Selectors:
    """CSS selectors for the result page layout.

    These are layout markers of the upstream page and break whenever it is
    redesigned; keep every selector here so parsing code never hardcodes one.
    """

    results_container: str = "#search"
    card: str = ".VkpGBb"
    details: str = ".rllt__details"
    heading: str = '[role="heading"]'
    rating_image: str = '[role="img"]'
    star_values: Tuple[str, ...] = (".yi40Hd", '[aria-hidden="true"]')
    reviews: str = '[aria-label*="reviews"]'


DEFAULT_SELECTORS = Selectors()


class PageStatus(str, Enum):
    OK = "ok"
    EMPTY = "empty"
    NO_CONTAINER = "no_container"


@dataclass(frozen=True)
class PageResult:
    """Outcome of extracting one page."""

    status: PageStatus
    records: Tuple[Record, ...] = ()
    degraded_cards: int = 0
    skipped_cards: int = 0

    @property
    def is_terminal(self) -> bool:
        return not self.records


@dataclass
class SearchResult:
    """Deduplicated records collected by one search call."""

    query: str
    records: List[Record] = field(default_factory=list)
    pages_fetched: int = 0
    raw_count: int = 0
    cancelled: bool = False
    stopped_by_limit: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return {
            "query": self.query,
            "records": [record.as_dict() for record in self.records],
            "pages_fetched": self.pages_fetched,
            "raw_count": self.raw_count,
            "cancelled": self.cancelled,
            "stopped_by_limit": self.stopped_by_limit,
        }
