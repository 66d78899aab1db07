"""Paginated search job: fetch result pages, extract listings, export them."""

import argparse
import json
import logging
import re
import threading
from functools import partial
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from localpack.core.config import ConfigError, Settings, get_settings
from localpack.etl.export import write_workbook
from localpack.etl.extract import extract_page
from localpack.models import FetchFailure, Record, SearchResult
from localpack.vendors.browser import BrowserFetcher
from localpack.vendors.google_search import build_search_url, fetch_page, fetch_via_proxy

logger = logging.getLogger(__name__)

Fetcher = Callable[[str], str]


def dedupe_records(records: Iterable[Record]) -> List[Record]:
    """Drop structurally identical records, keeping first-occurrence order."""
    return list(dict.fromkeys(records))


def build_fetcher(settings: Settings) -> Fetcher:
    """Pick the page fetcher for the configured backend."""
    if settings.fetch_backend == "browser":
        return BrowserFetcher(timeout=settings.request_timeout, headers=settings.request_headers)
    if settings.proxy_url:
        return partial(
            fetch_via_proxy,
            proxy_url=settings.proxy_url,
            headers=settings.request_headers,
            timeout=settings.request_timeout,
        )
    return partial(fetch_page, headers=settings.request_headers, timeout=settings.request_timeout)


def _slug(query: str) -> str:
    return re.sub(r"[^\w.-]+", "_", query.strip()).strip("_") or "search"


def _save_page(directory: Path, query: str, offset: int, html: str) -> None:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{_slug(query)}-{offset}.html"
    path.write_text(html, encoding="utf-8")
    logger.info("Saved %d characters to %s", len(html), path)


def search(
    query: str,
    *,
    fetcher: Optional[Fetcher] = None,
    settings: Optional[Settings] = None,
    cancel_event: Optional[threading.Event] = None,
    max_pages: Optional[int] = None,
    skip_missing_phone: Optional[bool] = None,
    default_region: Optional[str] = None,
    save_html_dir: Optional[Path] = None,
) -> SearchResult:
    """Walk result pages from offset 0 until one yields no records.

    The offset always advances by the page size, however many records the
    previous page produced. Without a page cap the loop ends only on an empty
    page. A FetchFailure aborts the search and propagates to the caller.
    """
    if not query or not query.strip():
        raise ValueError("Query must be provided")

    settings = settings or get_settings()
    max_pages = max_pages if max_pages is not None else settings.max_pages
    if skip_missing_phone is None:
        skip_missing_phone = settings.skip_missing_phone
    default_region = default_region or settings.default_phone_region

    owns_fetcher = fetcher is None
    fetcher = fetcher or build_fetcher(settings)

    result = SearchResult(query=query)
    collected: List[Record] = []
    offset = 0
    logger.info("Starting search for query=%s", query)

    try:
        while True:
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Search for query=%s cancelled after %d pages", query, result.pages_fetched)
                result.cancelled = True
                break
            if max_pages and result.pages_fetched >= max_pages:
                logger.warning("Stopping search for query=%s at page cap %d", query, max_pages)
                result.stopped_by_limit = True
                break

            url = build_search_url(query, offset, settings)
            html = fetcher(url)
            result.pages_fetched += 1
            if save_html_dir is not None:
                _save_page(Path(save_html_dir), query, offset, html)

            page = extract_page(
                html,
                default_region=default_region,
                skip_missing_phone=skip_missing_phone,
                base_url=url,
            )
            logger.info("Page at offset %d: status=%s records=%d", offset, page.status.value, len(page.records))
            if page.is_terminal:
                break

            collected.extend(page.records)
            offset += settings.page_size
    finally:
        if owns_fetcher and hasattr(fetcher, "close"):
            fetcher.close()

    result.raw_count = len(collected)
    result.records = dedupe_records(collected)
    logger.info(
        "Completed search for query=%s: pages=%d records=%d unique=%d",
        query,
        result.pages_fetched,
        result.raw_count,
        len(result.records),
    )
    return result


def default_output_path(query: str, settings: Settings) -> Path:
    return Path(settings.export_dir) / f"{_slug(query)}.xlsx"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Scrape local business listings into a spreadsheet")
    parser.add_argument("query", help="Search text, e.g. 'gym in tokyo'")
    parser.add_argument("--output", type=Path, help="Workbook path (defaults to EXPORT_DIR/<query>.xlsx)")
    parser.add_argument(
        "--skip-missing-phone",
        action="store_true",
        default=None,
        help="Drop listings without a valid phone number",
    )
    parser.add_argument("--max-pages", type=int, help="Stop after this many pages")
    parser.add_argument("--region", help="Default phone region for national-format numbers, e.g. US")
    parser.add_argument("--save-html", dest="save_html", type=Path, help="Directory to save fetched pages into")
    parser.add_argument("--json", action="store_true", help="Print records as JSON instead of writing a workbook")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    args = build_parser().parse_args(argv)

    try:
        settings = get_settings()
        result = search(
            args.query,
            settings=settings,
            max_pages=args.max_pages,
            skip_missing_phone=args.skip_missing_phone,
            default_region=args.region.upper() if args.region else None,
            save_html_dir=args.save_html,
        )
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        raise SystemExit(2) from exc
    except ValueError as exc:
        logger.error("Invalid search: %s", exc)
        raise SystemExit(2) from exc
    except FetchFailure as exc:
        logger.error("Search aborted, could not fetch %s: %s", exc.url, exc)
        raise SystemExit(1) from exc

    if args.json:
        print(json.dumps(result.as_dict(), ensure_ascii=False, indent=2))
        return

    output = args.output or default_output_path(args.query, settings)
    write_workbook(result.records, output)
    print(output)


if __name__ == "__main__":
    main()
