"""HTTP entrypoint that runs city hunts (Cloud Run / Render friendly)."""

from __future__ import annotations

import logging
import os
from dataclasses import asdict
from functools import lru_cache
from typing import Any, Dict

from flask import Flask, jsonify, request

from glow_hunter.core.config import ConfigError, get_settings
from glow_hunter.core.dedupe import Deduplicator
from glow_hunter.core.errors import (
    DestinationError,
    RunFailedError,
    UpstreamSearchError,
    ValidationError,
)
from glow_hunter.core.models import SearchQuery
from glow_hunter.core.sheets import sheet_name_for
from glow_hunter.etl.transform import row_from_mapping
from glow_hunter.jobs.run_city import RunCityOrchestrator, build_orchestrator, validate_request
from glow_hunter.vendors import google_places

# ---------- Logging ----------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

# ---------- App ----------
app = Flask(__name__)
app.json.ensure_ascii = False


@lru_cache(maxsize=1)
def get_orchestrator() -> RunCityOrchestrator:
    """Process-wide orchestrator; the Sheets client is authorized once."""
    return build_orchestrator(get_settings())


# ---------- Routes ----------


@app.get("/")
def root() -> Any:
    return "ok", 200


@app.get("/healthz")
def healthcheck() -> Any:
    return (
        jsonify(
            {
                "status": "ok",
                "revision": os.getenv("K_REVISION", "unknown"),
                "region": os.getenv("X_GOOGLE_RUNTIMEREGION", "unknown"),
            }
        ),
        200,
    )


@app.post("/run-city")
def run_city() -> Any:
    """
    Search every category in a city and append new places to the city's tab.
    Required JSON fields: country, city
    Optional: categories (list of str), language (str)
    """
    payload: Dict[str, Any] = request.get_json(silent=True) or {}

    # Validate before touching settings or the network.
    try:
        validate_request(payload.get("country"), payload.get("city"), payload.get("categories"))
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400

    try:
        summary = get_orchestrator().run(
            payload.get("country"),
            payload.get("city"),
            payload.get("categories"),
            language=payload.get("language"),
        )
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400
    except RunFailedError as exc:
        return _failed_run_response(exc)
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        return jsonify({"error": "service is not configured"}), 500
    except Exception as exc:  # noqa: BLE001
        logger.exception("run-city failed: %s", exc)
        return jsonify({"status": "error", "error": "run failed"}), 500

    return jsonify({"status": "ok", **summary.to_dict()}), 200


@app.post("/places/search-city")
def search_city() -> Any:
    """Run a single Text Search and return the raw records without persisting them."""
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    required = ("country", "city", "category")
    missing = [f for f in required if not str(payload.get(f) or "").strip()]
    if missing:
        return jsonify({"error": f"missing fields: {', '.join(missing)}"}), 400

    query = SearchQuery(
        category=str(payload["category"]).strip(),
        city=str(payload["city"]).strip(),
        country=str(payload["country"]).strip(),
    )
    try:
        settings = get_settings()
        records = google_places.search_all(
            query.text,
            settings.google_api_key,
            language=str(payload.get("language") or settings.language),
            max_pages=settings.max_pages,
            page_delay=settings.page_delay_seconds,
        )
    except UpstreamSearchError as exc:
        logger.error("search-city failed for query=%s: %s", query.text, exc)
        return jsonify({"error": exc.message, "upstream_status": exc.status}), 502
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        return jsonify({"error": "service is not configured"}), 500

    return jsonify({"query": query.text, "count": len(records), "results": [asdict(r) for r in records]}), 200


@app.post("/sheets/append")
def append_to_sheet() -> Any:
    """Append header-keyed row objects to a tab, skipping places already stored."""
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    raw_name = str(payload.get("sheet_name") or "").strip()
    rows = payload.get("rows")
    if not raw_name:
        return jsonify({"error": "missing fields: sheet_name"}), 400
    if not isinstance(rows, list) or not all(isinstance(row, dict) for row in rows):
        return jsonify({"error": "rows must be a list of objects"}), 400

    sheet_name = sheet_name_for(raw_name)
    try:
        sink = get_orchestrator().sink
        sink.ensure_destination(sheet_name)
        dedupe = Deduplicator(sink.read_existing_keys(sheet_name))
        accepted = dedupe.filter_new(row_from_mapping(row) for row in rows)
        appended = sink.append_rows(sheet_name, accepted)
    except DestinationError as exc:
        logger.exception("sheets/append failed for tab %s", sheet_name)
        return jsonify({"error": str(exc)}), 500
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        return jsonify({"error": "service is not configured"}), 500

    body = {
        "status": "ok",
        "sheetName": sheet_name,
        "sheet_name": sheet_name,
        "received": len(rows),
        "appended": appended,
    }
    return jsonify(body), 200


# ---------- Internals ----------


def _failed_run_response(exc: RunFailedError) -> Any:
    cause = exc.cause
    body: Dict[str, Any] = {"status": "error", "error": str(cause), **exc.summary.to_dict()}
    if isinstance(cause, UpstreamSearchError):
        logger.exception("Run failed on Places search: %s", cause)
        body["error"] = cause.message
        body["upstream_status"] = cause.status
        return jsonify(body), 502
    logger.exception("Run failed on destination: %s", cause)
    return jsonify(body), 500


def main() -> None:
    """Fail fast on missing configuration, then bind on 0.0.0.0:$PORT."""
    try:
        settings = get_settings()
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        raise SystemExit(2) from exc

    port = int(os.getenv("PORT") or settings.port)
    logger.info("[BOOT] Binding on 0.0.0.0:%d", port)
    app.run(host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
