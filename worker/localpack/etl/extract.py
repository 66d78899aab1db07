"""Turn one page of local-pack search results into normalized Records.

Extraction is pure: an HTML string (or an already parsed tree) goes in and a
list of Records comes out. Fetching, pagination and export live elsewhere.

The page layout is uncontrolled and changes often, so a card that is missing
pieces degrades to default field values instead of failing the page. Only a
page without any results container is reported, via NoResultsContainer.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Union
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from bs4.element import Tag

from localpack.core.phone import collapse_whitespace, normalize_phone
from localpack.models import DEFAULT_SELECTORS, NoResultsContainer, PageResult, PageStatus, Record, Selectors

logger = logging.getLogger(__name__)

SEPARATOR = "·"
WEBSITE_LABEL = "Website"
RATING_TEXT_REGEX = re.compile(r"^\d\.\d")
LEADING_FLOAT_REGEX = re.compile(r"^\s*[+-]?(?:\d+(?:\.\d*)?|\.\d+)")
NOT_AN_ADDRESS_NEAR_PHONE = ("years in business", "Open")
NOT_AN_ADDRESS_LINE = ("Opens", "Closed")

HtmlParser = Callable[[str], Tag]


def parse_html(text: str) -> BeautifulSoup:
    return BeautifulSoup(text, "html.parser")


@dataclass
class _CardFields:
    title: str = "N/A"
    category: str = ""
    reviews: int = 0
    stars: float = 0.0
    phone: str = ""
    address: str = ""
    url: str = ""
    degraded: bool = False

    def to_record(self) -> Record:
        return Record(
            title=self.title,
            category=self.category,
            reviews=self.reviews,
            stars=self.stars,
            complete_phone_number=self.phone,
            address=self.address,
            url=self.url,
        )


def _parse_leading_float(text: str) -> Optional[float]:
    match = LEADING_FLOAT_REGEX.match(text or "")
    if not match:
        return None
    return float(match.group(0))


def _is_rating_line(line: Tag, text: str, selectors: Selectors) -> bool:
    return line.select_one(selectors.rating_image) is not None or bool(RATING_TEXT_REGEX.match(text))


def _apply_rating_line(fields: _CardFields, line: Tag, text: str, selectors: Selectors) -> None:
    star_el = None
    for selector in selectors.star_values:
        star_el = line.select_one(selector)
        if star_el is not None:
            break
    if star_el is not None:
        stars = _parse_leading_float(star_el.get_text())
        if stars is not None:
            fields.stars = stars

    reviews_el = line.select_one(selectors.reviews)
    if reviews_el is not None:
        digits = re.sub(r"\D", "", reviews_el.get_text())
        fields.reviews = int(digits) if digits else 0

    if SEPARATOR in text:
        fields.category = text.split(SEPARATOR)[-1].strip()


def _apply_metadata_line(fields: _CardFields, text: str, default_region: Optional[str]) -> None:
    segments = [segment.strip() for segment in text.split(SEPARATOR)]
    phone = normalize_phone(collapse_whitespace(segments[-1]), default_region)

    if phone:
        fields.phone = phone
        if len(segments) > 1:
            candidate = segments[-2]
            if candidate and not any(marker in candidate for marker in NOT_AN_ADDRESS_NEAR_PHONE):
                fields.address = collapse_whitespace(candidate)
        return

    # No phone on this line: take the whole line as the address if it looks like one.
    if fields.address or "," not in text:
        return
    if any(marker in text for marker in NOT_AN_ADDRESS_LINE):
        return
    fields.address = collapse_whitespace(text)


def _find_website(card: Tag, base_url: Optional[str]) -> str:
    for anchor in card.find_all("a"):
        if WEBSITE_LABEL in anchor.get_text():
            href = anchor.get("href") or ""
            if href and base_url:
                return urljoin(base_url, href)
            return href
    return ""


def extract_card(
    card: Tag,
    *,
    selectors: Selectors = DEFAULT_SELECTORS,
    default_region: Optional[str] = None,
    base_url: Optional[str] = None,
) -> _CardFields:
    fields = _CardFields()

    heading = card.select_one(selectors.heading)
    if heading is not None:
        title = collapse_whitespace(heading.get_text())
        if title:
            fields.title = title

    fields.url = _find_website(card, base_url)

    details = card.select_one(selectors.details)
    if details is None:
        fields.degraded = True
        logger.debug("Card %r has no details block; keeping defaults", fields.title)
        return fields

    for line in details.find_all("div", recursive=False):
        text = line.get_text().strip()
        if _is_rating_line(line, text, selectors):
            _apply_rating_line(fields, line, text, selectors)
        elif text:
            _apply_metadata_line(fields, text, default_region)

    return fields


def _extract(
    document: Union[str, Tag],
    *,
    selectors: Selectors,
    default_region: Optional[str],
    skip_missing_phone: bool,
    base_url: Optional[str],
    parser: HtmlParser,
) -> PageResult:
    tree = parser(document) if isinstance(document, str) else document

    container = tree.select_one(selectors.results_container)
    if container is None:
        raise NoResultsContainer(f"No element matches results container selector {selectors.results_container!r}")

    records: List[Record] = []
    degraded = 0
    skipped = 0
    cards = container.select(selectors.card)
    for card in cards:
        fields = extract_card(card, selectors=selectors, default_region=default_region, base_url=base_url)
        if fields.degraded:
            degraded += 1
        if skip_missing_phone and not fields.phone:
            skipped += 1
            continue
        records.append(fields.to_record())

    logger.info(
        "Extracted %d records from %d cards (degraded=%d, skipped=%d)", len(records), len(cards), degraded, skipped
    )
    status = PageStatus.OK if records else PageStatus.EMPTY
    return PageResult(status=status, records=tuple(records), degraded_cards=degraded, skipped_cards=skipped)


def extract_records(
    document: Union[str, Tag],
    *,
    selectors: Selectors = DEFAULT_SELECTORS,
    default_region: Optional[str] = None,
    skip_missing_phone: bool = False,
    base_url: Optional[str] = None,
    parser: HtmlParser = parse_html,
) -> List[Record]:
    """Return one Record per listing card, in document order.

    Raises NoResultsContainer when the page has no results container.
    """
    page = _extract(
        document,
        selectors=selectors,
        default_region=default_region,
        skip_missing_phone=skip_missing_phone,
        base_url=base_url,
        parser=parser,
    )
    return list(page.records)


def extract_page(
    document: Union[str, Tag],
    *,
    selectors: Selectors = DEFAULT_SELECTORS,
    default_region: Optional[str] = None,
    skip_missing_phone: bool = False,
    base_url: Optional[str] = None,
    parser: HtmlParser = parse_html,
) -> PageResult:
    """Like extract_records, but reports a missing container as a PageStatus."""
    try:
        return _extract(
            document,
            selectors=selectors,
            default_region=default_region,
            skip_missing_phone=skip_missing_phone,
            base_url=base_url,
            parser=parser,
        )
    except NoResultsContainer as exc:
        logger.warning("%s; treating page as empty", exc)
        return PageResult(status=PageStatus.NO_CONTAINER)
