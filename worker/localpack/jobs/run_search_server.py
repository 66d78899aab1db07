"""HTTP entrypoint for running searches and proxying result-page fetches."""

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from flask import Flask, jsonify, request

from localpack.core.config import get_settings
from localpack.etl.export import write_workbook
from localpack.jobs.run_search import default_output_path, search
from localpack.models import FetchFailure
from localpack.vendors.google_search import fetch_page

# ---------- Logging ----------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

# ---------- App & executor ----------
app = Flask(__name__)
_executor = ThreadPoolExecutor(max_workers=4)


class _BadRequest(ValueError):
    pass


def _parse_search_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    query = str(payload.get("query") or "").strip()
    if not query:
        raise _BadRequest("query is required")

    max_pages: Optional[int] = None
    max_pages_raw = payload.get("max_pages")
    if max_pages_raw is not None:
        try:
            max_pages = int(max_pages_raw)
        except (TypeError, ValueError):
            raise _BadRequest("max_pages must be numeric")
        if max_pages <= 0:
            raise _BadRequest("max_pages must be positive")

    skip_missing_phone: Optional[bool] = None
    if payload.get("skip_missing_phone") is not None:
        skip_missing_phone = bool(payload["skip_missing_phone"])

    region_raw = payload.get("region")
    region = str(region_raw).strip().upper() if region_raw else None

    return dict(
        query=query,
        max_pages=max_pages,
        skip_missing_phone=skip_missing_phone,
        default_region=region,
    )


# ---------- Routes ----------


@app.get("/healthz")
def healthcheck() -> Any:
    settings = get_settings()
    return (
        jsonify(
            {
                "status": "ok",
                "fetch_backend": settings.fetch_backend,
                "revision": os.getenv("K_REVISION", "unknown"),
            }
        ),
        200,
    )


@app.post("/search")
def run_search() -> Any:
    """Run a search synchronously and return the deduplicated records.

    JSON fields: query (required), max_pages, skip_missing_phone, region.
    """
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    try:
        job_args = _parse_search_payload(payload)
    except _BadRequest as exc:
        return jsonify({"error": str(exc)}), 400

    try:
        result = search(**job_args)
    except FetchFailure as exc:
        logger.error("Search failed for query=%s: %s", job_args["query"], exc)
        return jsonify({"error": f"fetch failed: {exc}", "url": exc.url}), 502

    return jsonify({"data": result.as_dict()}), 200


@app.post("/export")
def enqueue_export() -> Any:
    """Queue a search whose records are written to a workbook on disk."""
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    try:
        job_args = _parse_search_payload(payload)
    except _BadRequest as exc:
        return jsonify({"error": str(exc)}), 400

    output = default_output_path(job_args["query"], get_settings())
    logger.info("Queueing export job: %s -> %s", job_args, output)
    _executor.submit(_run_export_safe, job_args, str(output))

    return jsonify({"data": {"status": "queued", "output": str(output)}}), 202


@app.get("/fetch")
def proxy_fetch() -> Any:
    """Fetch a search result page server-side and hand back its HTML as {"data": html}.

    Only URLs on the configured search endpoint are fetched.
    """
    url = (request.args.get("url") or "").strip()
    if not url:
        return jsonify({"error": "url is required"}), 400
    if not _is_search_url(url, get_settings().search_url):
        logger.warning("Refusing to proxy non-search URL %s", url)
        return jsonify({"error": "url must point at the search endpoint"}), 400

    try:
        html = fetch_page(url)
    except FetchFailure as exc:
        status = exc.status_code or 502
        return jsonify({"error": str(exc)}), status if status >= 400 else 502

    return jsonify({"data": html}), 200


# ---------- Internals ----------


def _is_search_url(url: str, search_url: str) -> bool:
    target = urlparse(url)
    allowed = urlparse(search_url)
    return (
        target.scheme == allowed.scheme
        and target.netloc.lower() == allowed.netloc.lower()
        and target.path == allowed.path
        and not target.username
        and not target.password
    )


def _run_export_safe(job_args: Dict[str, Any], output: str) -> None:
    try:
        result = search(**job_args)
        write_workbook(result.records, output)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Export job failed: %s", exc)


def main() -> None:
    port = int(os.getenv("PORT") or 8080)
    logger.info("[BOOT] Binding on 0.0.0.0:%d", port)
    app.run(host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
